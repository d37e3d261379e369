"""Cypher query templates for project snapshots.

This module contains the Cypher queries used to replace and read the stored
snapshot of a project. All queries use parameterized values for security
and performance.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class CypherQueries:
    """Collection of Cypher query templates.

    All queries use parameterized values (prefixed with $) for safety.
    Never concatenate user input directly into queries.
    """

    # ==========================================================================
    # Snapshot Replacement Queries
    # ==========================================================================

    UPSERT_PROJECT = """
        MERGE (p:Project {slug: $slug})
        SET p.type = $type,
            p.destination_type = $destination_type,
            p.destination_name = $destination_name,
            p.repository_name = $repository_name,
            p.repository_clone_url = $repository_clone_url,
            p.summary = $summary,
            p.updated_at = $updated_at
        RETURN p
    """

    DELETE_PROJECT_COMPOUNDS = """
        MATCH (p:Project {slug: $slug})-[:HAS_COMPOUND]->(c:Compound)
        DETACH DELETE c
        RETURN count(c) as deleted
    """

    CREATE_COMPOUNDS = """
        MATCH (p:Project {slug: $slug})
        UNWIND $compounds as row
        CREATE (c:Compound)
        SET c = row.props,
            c.uid = row.uid,
            c.project_slug = $slug
        CREATE (p)-[:HAS_COMPOUND]->(c)
        RETURN count(c) as created
    """

    LINK_COMPOUND_PARENTS = """
        UNWIND $links as link
        MATCH (parent:Compound {uid: link.parent_uid})
        MATCH (child:Compound {uid: link.child_uid})
        MERGE (parent)-[:CONTAINS]->(child)
        RETURN count(*) as linked
    """

    # ==========================================================================
    # Read Queries
    # ==========================================================================

    GET_PROJECT = """
        MATCH (p:Project {slug: $slug})
        RETURN p
    """

    GET_PROJECT_COMPOUNDS = """
        MATCH (:Project {slug: $slug})-[:HAS_COMPOUND]->(c:Compound)
        RETURN c
        ORDER BY c.file_path, c.start_line, c.id
    """

    # ==========================================================================
    # Schema
    # ==========================================================================

    CONSTRAINTS = (
        "CREATE CONSTRAINT project_slug_unique IF NOT EXISTS "
        "FOR (p:Project) REQUIRE p.slug IS UNIQUE",
        "CREATE CONSTRAINT compound_uid_unique IF NOT EXISTS "
        "FOR (c:Compound) REQUIRE c.uid IS UNIQUE",
    )

    INDEXES = (
        "CREATE INDEX compound_project IF NOT EXISTS FOR (c:Compound) ON (c.project_slug)",
        "CREATE INDEX compound_kind IF NOT EXISTS FOR (c:Compound) ON (c.kind)",
    )


# Singleton instance for easy import
QUERIES = CypherQueries()
