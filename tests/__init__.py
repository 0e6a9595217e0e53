"""Test package for hrderby."""
