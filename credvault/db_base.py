"""Declarative base shared by all credential vault models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
