"""Shared data model primitives."""

from branchfeed.data_model.base import StrictBaseModel


__all__ = ["StrictBaseModel"]
