"""SQL for the DuckDB session store.

Placeholders:
- {where}: optional WHERE clause built from list/stats filters
- {order_by}: ORDER BY expression chosen from SESSION_SORT_COLUMNS
"""

CONTEXT_WINDOW_TOKENS = 200_000

# Session ids are unique by construction: a session is only ever written by
# SessionStore.replace_session, which deletes before inserting. DuckDB rejects
# re-inserting a deleted primary key inside one transaction, so no key
# constraints are declared.
SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id                  VARCHAR NOT NULL,
    project             VARCHAR NOT NULL,
    project_hash        VARCHAR NOT NULL,
    first_prompt        VARCHAR,
    model               VARCHAR,
    status              VARCHAR NOT NULL DEFAULT 'completed',
    input_tokens        BIGINT NOT NULL DEFAULT 0,
    output_tokens       BIGINT NOT NULL DEFAULT 0,
    cache_read_tokens   BIGINT NOT NULL DEFAULT 0,
    cache_create_tokens BIGINT NOT NULL DEFAULT 0,
    estimated_cost_usd  DOUBLE NOT NULL DEFAULT 0,
    message_count       INTEGER NOT NULL DEFAULT 0,
    tool_call_count     INTEGER NOT NULL DEFAULT 0,
    subagent_count      INTEGER NOT NULL DEFAULT 0,
    turn_count          INTEGER NOT NULL DEFAULT 0,
    peak_context_tokens BIGINT NOT NULL DEFAULT 0,
    started_at          VARCHAR,
    ended_at            VARCHAR,
    duration_ms         BIGINT,
    synced_at           VARCHAR NOT NULL,
    jsonl_path          VARCHAR NOT NULL,
    jsonl_mtime         VARCHAR NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_id ON sessions(id);
CREATE INDEX IF NOT EXISTS idx_sessions_project ON sessions(project);
CREATE INDEX IF NOT EXISTS idx_sessions_started ON sessions(started_at);

CREATE TABLE IF NOT EXISTS tool_calls (
    session_id    VARCHAR NOT NULL,
    seq           INTEGER NOT NULL,
    subagent_id   VARCHAR,
    tool_use_id   VARCHAR,
    tool_name     VARCHAR NOT NULL,
    tool_input    VARCHAR,
    tool_response VARCHAR,
    status        VARCHAR NOT NULL DEFAULT 'pending',
    occurred_at   VARCHAR NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tc_session ON tool_calls(session_id);
CREATE INDEX IF NOT EXISTS idx_tc_tool ON tool_calls(tool_name);

CREATE TABLE IF NOT EXISTS messages (
    session_id  VARCHAR NOT NULL,
    seq         INTEGER NOT NULL,
    role        VARCHAR NOT NULL,
    content     VARCHAR NOT NULL,
    occurred_at VARCHAR NOT NULL,
    model       VARCHAR,
    cost_usd    DOUBLE
);

CREATE INDEX IF NOT EXISTS idx_msg_session ON messages(session_id);

CREATE TABLE IF NOT EXISTS subagents (
    id                  VARCHAR NOT NULL,
    session_id          VARCHAR NOT NULL,
    agent_type          VARCHAR,
    model               VARCHAR,
    prompt              VARCHAR,
    input_tokens        BIGINT NOT NULL DEFAULT 0,
    output_tokens       BIGINT NOT NULL DEFAULT 0,
    cache_read_tokens   BIGINT NOT NULL DEFAULT 0,
    cache_create_tokens BIGINT NOT NULL DEFAULT 0,
    estimated_cost_usd  DOUBLE NOT NULL DEFAULT 0,
    tool_call_count     INTEGER NOT NULL DEFAULT 0,
    duration_ms         BIGINT,
    result_summary      VARCHAR
);

CREATE INDEX IF NOT EXISTS idx_sub_session ON subagents(session_id);

CREATE TABLE IF NOT EXISTS compactions (
    session_id     VARCHAR NOT NULL,
    seq            INTEGER NOT NULL,
    trigger_reason VARCHAR NOT NULL DEFAULT 'auto',
    pre_tokens     BIGINT NOT NULL DEFAULT 0,
    occurred_at    VARCHAR NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_compact_session ON compactions(session_id)
"""

# ============================================================================
# Writes
# ============================================================================

# Children first; there are no cascading foreign keys.
DELETE_SESSION_ROWS = [
    "DELETE FROM tool_calls WHERE session_id = ?",
    "DELETE FROM messages WHERE session_id = ?",
    "DELETE FROM subagents WHERE session_id = ?",
    "DELETE FROM compactions WHERE session_id = ?",
    "DELETE FROM sessions WHERE id = ?",
]

INSERT_SESSION = """
INSERT INTO sessions (
    id, project, project_hash, first_prompt, model, status,
    input_tokens, output_tokens, cache_read_tokens, cache_create_tokens, estimated_cost_usd,
    message_count, tool_call_count, subagent_count, turn_count, peak_context_tokens,
    started_at, ended_at, duration_ms, synced_at, jsonl_path, jsonl_mtime
) VALUES (?, ?, ?, ?, ?, 'completed', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

INSERT_TOOL_CALL = """
INSERT INTO tool_calls (
    session_id, seq, subagent_id, tool_use_id, tool_name, tool_input, tool_response,
    status, occurred_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

INSERT_MESSAGE = """
INSERT INTO messages (session_id, seq, role, content, occurred_at, model, cost_usd)
VALUES (?, ?, ?, ?, ?, ?, ?)
"""

INSERT_SUBAGENT = """
INSERT INTO subagents (
    id, session_id, agent_type, model, prompt,
    input_tokens, output_tokens, cache_read_tokens, cache_create_tokens, estimated_cost_usd,
    tool_call_count, duration_ms, result_summary
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

INSERT_COMPACTION = """
INSERT INTO compactions (session_id, seq, trigger_reason, pre_tokens, occurred_at)
VALUES (?, ?, ?, ?, ?)
"""

# ============================================================================
# Reads
# ============================================================================

SESSION_MTIME = "SELECT jsonl_mtime FROM sessions WHERE id = ?"

SESSION_COUNT = "SELECT COUNT(*) FROM sessions"

SYNC_STATUS = "SELECT MAX(synced_at) AS last_synced_at, COUNT(*) AS session_count FROM sessions"

_TOTAL_TOKENS = "(input_tokens + output_tokens + cache_read_tokens + cache_create_tokens)"

SESSION_SORT_COLUMNS = {
    "date": "s.started_at DESC",
    "cost": "s.estimated_cost_usd DESC",
    "tokens": "(s.input_tokens + s.output_tokens + s.cache_read_tokens + s.cache_create_tokens) DESC",
    "duration": "s.duration_ms DESC",
}

# Peak context is the larger of the biggest single turn and the biggest
# pre-compaction size, as a percentage of the context window.
_SESSION_COLUMNS = f"""
    s.*,
    COALESCE((SELECT COUNT(*) FROM compactions c WHERE c.session_id = s.id), 0)
        AS compaction_count,
    ROUND(
        greatest(
            s.peak_context_tokens,
            COALESCE((SELECT MAX(c.pre_tokens) FROM compactions c WHERE c.session_id = s.id), 0)
        ) * 100.0 / {CONTEXT_WINDOW_TOKENS},
        1
    ) AS peak_context_pct
"""

SESSION_LIST_COUNT = "SELECT COUNT(*) FROM sessions s {where}"

SESSION_LIST = f"""
SELECT {_SESSION_COLUMNS}
FROM sessions s
{{where}}
ORDER BY {{order_by}} NULLS LAST
LIMIT ? OFFSET ?
"""

SESSION_BY_ID = f"""
SELECT {_SESSION_COLUMNS}
FROM sessions s
WHERE s.id = ?
"""

SESSION_DURATION = "SELECT duration_ms FROM sessions WHERE id = ?"

TIMELINE_TOOL_CALLS = """
SELECT 'tool_call' AS kind, occurred_at AS "timestamp", seq,
       subagent_id, tool_use_id, tool_name, tool_input, tool_response, status
FROM tool_calls
WHERE session_id = ?
ORDER BY occurred_at, seq
"""

TIMELINE_MESSAGES = """
SELECT 'message' AS kind, occurred_at AS "timestamp", seq, role, content, model, cost_usd
FROM messages
WHERE session_id = ?
ORDER BY occurred_at, seq
"""

SUBAGENTS_FOR_SESSION = "SELECT * FROM subagents WHERE session_id = ? ORDER BY id"

COMPACTIONS_FOR_SESSION = """
SELECT occurred_at AS "timestamp", trigger_reason AS "trigger", pre_tokens
FROM compactions
WHERE session_id = ?
ORDER BY occurred_at, seq
"""

STATS_TOTALS = f"""
SELECT
    COUNT(*) AS total_sessions,
    COALESCE(SUM(estimated_cost_usd), 0) AS total_cost,
    COALESCE(SUM{_TOTAL_TOKENS}, 0) AS total_tokens,
    COALESCE(SUM(input_tokens), 0) AS input_tokens,
    COALESCE(SUM(output_tokens), 0) AS output_tokens,
    COALESCE(SUM(cache_read_tokens), 0) AS cache_read_tokens,
    COALESCE(SUM(cache_create_tokens), 0) AS cache_create_tokens
FROM sessions s
{{where}}
"""

STATS_BY_MODEL = f"""
SELECT model AS key, COUNT(*) AS sessions, SUM(estimated_cost_usd) AS cost,
       SUM{_TOTAL_TOKENS} AS tokens
FROM sessions s
{{where}}
GROUP BY model
ORDER BY cost DESC
"""

STATS_BY_PROJECT = f"""
SELECT project AS key, COUNT(*) AS sessions, SUM(estimated_cost_usd) AS cost,
       SUM{_TOTAL_TOKENS} AS tokens
FROM sessions s
{{where}}
GROUP BY project
ORDER BY cost DESC
"""

STATS_BY_DAY = f"""
SELECT substr(started_at, 1, 10) AS key, COUNT(*) AS sessions,
       SUM(estimated_cost_usd) AS cost, SUM{_TOTAL_TOKENS} AS tokens
FROM sessions s
{{where}}
GROUP BY substr(started_at, 1, 10)
ORDER BY key
"""

STATS_TOP_TOOLS = """
SELECT tc.tool_name AS tool, COUNT(*) AS "count"
FROM tool_calls tc
JOIN sessions s ON tc.session_id = s.id
{where}
GROUP BY tc.tool_name
ORDER BY "count" DESC, tool
LIMIT 15
"""
