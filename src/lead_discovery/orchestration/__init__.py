"""
Orchestration package: job registry, source aggregation and the discovery
service that wires the pipeline together.
"""
