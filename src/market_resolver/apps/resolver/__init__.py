"""Automatic resolution, settlement, and claim workflows for prediction markets."""
