"""JSON HTTP surface for Panel Tracker."""
