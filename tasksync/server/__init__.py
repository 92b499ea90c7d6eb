"""
tasksync REST API server

Usage:
    tasksync-server --config config.yaml
    # → http://0.0.0.0:8000
"""
