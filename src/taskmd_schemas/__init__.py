"""JSON schemas shipped with taskmd as package data."""
