"""
devops-cli - CLI tool for Azure DevOps work items

Lists, queries, summarizes and updates work items over the REST API.
"""

__version__ = "0.3.0"
