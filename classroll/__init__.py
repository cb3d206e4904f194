"""Classroom attendance tracker."""
