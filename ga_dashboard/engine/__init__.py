"""
Report-aggregation engine.

decoders turn raw rows into typed records, aggregators fold records into
derived statistics, and pipeline runs a builder's sub-queries concurrently
under one deadline.
"""
