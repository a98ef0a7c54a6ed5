"""Pagination, dispatch and progress reporting for the quota run."""
