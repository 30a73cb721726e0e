"""Core domain package for telebridge.

Core contains pairing, correlation, policy, and propagation logic without any
Discord, Telegram, or HTTP-specific code, keeping the relay logic portable.
"""
