"""
==================================================
Pytest suite for sql/ddl.py and sql/query_builder.py
==================================================

Sections:
---------
1. Unit tests: generated statements and quoting
2. Edge case tests: quoting of unusual names, sequence defaults

Available markers:
------------------
unit, edge_case

How to Execute:
---------------
All tests:          python -m pytest tests/tests_sql/test_sql.py -v
"""

from pytest import mark, raises

from sql.ddl import (
    copy_database_sql,
    create_database_sql,
    create_role_sql,
    drop_database_sql,
    drop_role_sql,
    set_sequence_value_sql,
    terminate_connections_sql,
    truncate_tables_sql,
)
from sql.query_builder import (
    get_entities_sql,
    get_sequences_sql,
    parse_sequence_reference,
    quote_identifier,
    quote_literal,
    quote_qualified,
    split_qualified_name,
)

# ===============
# 1. UNIT TESTS
# ===============


@mark.unit
def test_create_database_sql_defaults():
    assert create_database_sql("test-db-1") == \
        'CREATE DATABASE "test-db-1" WITH ENCODING = \'UTF8\' TEMPLATE = "template0";'


@mark.unit
def test_create_database_sql_with_locale_and_owner():
    sql = create_database_sql("app", template="template1", encoding="LATIN1",
                              lc_collate="C", lc_ctype="C", owner="tester")

    assert sql == ('CREATE DATABASE "app" WITH ENCODING = \'LATIN1\' TEMPLATE = "template1" '
                   'LC_COLLATE = \'C\' LC_CTYPE = \'C\' OWNER = "tester";')


@mark.unit
def test_copy_database_sql_uses_source_as_template():
    assert copy_database_sql("source", "target") == 'CREATE DATABASE "target" WITH TEMPLATE = "source";'


@mark.unit
def test_drop_database_sql_variants():
    assert drop_database_sql("app") == 'DROP DATABASE IF EXISTS "app";'
    assert drop_database_sql("app", if_exists=False, force=True) == 'DROP DATABASE "app" WITH (FORCE);'


@mark.unit
def test_terminate_connections_sql_excludes_own_backend():
    sql = terminate_connections_sql("app")

    assert "pg_terminate_backend(pid)" in sql
    assert "datname = 'app'" in sql
    assert "pid <> pg_backend_pid()" in sql


@mark.unit
def test_role_statements():
    assert create_role_sql("tester", "secret") == 'CREATE ROLE "tester" LOGIN PASSWORD \'secret\';'
    assert drop_role_sql("tester") == 'DROP ROLE IF EXISTS "tester";'


@mark.unit
def test_truncate_tables_sql_single_statement():
    sql = truncate_tables_sql([("public", "member"), ("audit", "log")])

    assert sql == 'TRUNCATE "public"."member", "audit"."log" RESTART IDENTITY;'


@mark.unit
def test_set_sequence_value_sql():
    sql = set_sequence_value_sql("public", "member_id_seq", "public", "member", "id")

    assert sql == ('SELECT setval(\'"public"."member_id_seq"\', '
                   'COALESCE((SELECT MAX("id") + 1 FROM "public"."member"), 1), false);')


@mark.unit
def test_catalog_queries_take_schema_parameter():
    assert "%(schemas)s" in get_entities_sql()
    assert "%(schemas)s" in get_sequences_sql()
    assert "LIKE 'nextval(%%'" in get_sequences_sql()


@mark.unit
def test_parse_sequence_reference():
    assert parse_sequence_reference("nextval('member_id_seq'::regclass)") == (None, "member_id_seq")
    assert parse_sequence_reference("nextval('audit.log_id_seq'::regclass)") == ("audit", "log_id_seq")

# ===============
# 2. EDGE CASE TESTS
# ===============


@mark.edge_case
def test_quoting_doubles_embedded_quotes():
    assert quote_identifier('my "db"') == '"my ""db"""'
    assert quote_literal("it's") == "'it''s'"
    assert quote_qualified(None, "member") == '"member"'


@mark.edge_case
def test_role_password_is_escaped():
    assert create_role_sql("tester", "o'neil") == 'CREATE ROLE "tester" LOGIN PASSWORD \'o\'\'neil\';'


@mark.edge_case
def test_truncate_without_tables_raises():
    with raises(ValueError):
        truncate_tables_sql([])


@mark.edge_case
def test_split_qualified_name_handles_quoted_parts():
    assert split_qualified_name('"My Schema"."odd.seq"') == ["My Schema", "odd.seq"]


@mark.edge_case
@mark.parametrize("default", [None, "", "0", "now()", "nextval('a.b.c'::regclass)"])
def test_parse_sequence_reference_ignores_other_defaults(default):
    assert parse_sequence_reference(default) is None


@mark.edge_case
def test_parse_sequence_reference_quoted_name():
    assert parse_sequence_reference("nextval('\"Member\"\"s\".\"id_seq\"'::regclass)") == ('Member"s', "id_seq")
