"""Salesforce org operations exposed as MCP tools."""

__version__ = "2.0.0"
