"""Pydantic schemas for API request/response models."""

from .mysql import *
