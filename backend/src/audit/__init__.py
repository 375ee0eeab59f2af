"""Audit module - append-only security and entity-mutation trail.

Import ``audit.service.AuditTrail`` directly; this package init stays empty so
the tenancy layer can depend on ``audit.schemas`` without an import cycle.
"""
