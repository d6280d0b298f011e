"""
Calendar Domain

Business opening hours: seasonal weekly templates, holiday overrides and the
resolver answering "are we open?" for a date, a time or an instant.
"""
