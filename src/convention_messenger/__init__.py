"""
Convention messenger: conversation provisioning and unread tracking for
edition volunteer teams, organizers and artist applications.
"""
