"""Common utilities, models and configurations for Edge Shield."""
