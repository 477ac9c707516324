"""Shared building blocks: exceptions and response envelopes."""
