"""Core domain package for telecmd.

Core contains rule matching, command building, process execution and output
interpretation without any Telegram or config-file specific code, keeping the
dispatch logic portable.
"""
