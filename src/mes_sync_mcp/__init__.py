"""
MES Sync MCP - Model Context Protocol server for ERP-to-Lighthouse schedule sync.

This package reconciles the ERP work-center schedule for a shift against the
planned-output assignments stored on Lighthouse, and applies a selected subset
of the resulting changes back to Lighthouse in a single batched call.
"""

__version__ = "0.1.0"
