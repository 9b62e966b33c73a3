"""
portal_kernel -- Shared infrastructure for the accounting portal.

Provides structured logging, the typed exception hierarchy, the injectable
clock, database engine/session management, and the ORM models for the
reference (NSI) tables and the narrow slice of portal tables that
maintenance operations touch.

Architecture:
    portal_kernel/ is the lowest layer.  It MUST NOT import from
    portal_config/ or nsi_sync/.
"""
