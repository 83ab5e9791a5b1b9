"""Application services for the shipit CLI.

Services implement the release pipeline, coordinating between the core
types (core/) and the infrastructure adapters (git/, platform/).
"""
