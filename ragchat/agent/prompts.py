"""Prompt text for the agent loop: system contract, tool feedback, corrective and fallback messages."""

import json
from typing import Any

SYSTEM_PROMPT = """You are an AI assistant that answers user queries about stored documents by executing functions.

ANALYSIS PROCESS:
1. Analyze the user's query carefully
2. Determine if you need to call a function or can provide a final response
3. Respond in the exact JSON format specified below

RESPONSE FORMAT:
You must respond with EXACTLY one of these JSON structures.

For Function Calls:
{{
    "type": "functionCall",
    "response": {{
        "function": "<function name>",
        "args": {{"query": "string", "topK": number}},
        "status": "continue|retry|done"
    }}
}}

For Final Responses:
{{
    "type": "finalResponse",
    "response": "Your complete answer in markdown format here"
}}

AVAILABLE FUNCTIONS:
{tool_catalog}

DECISION RULES:

For document summary queries ("what are the docs about?", "summarize documents"):
1. First call retrieveAllDocs to check existing documents
2. If no documents are found, call createThenRetrieve with query "document summary" and topK 5
3. Then provide a finalResponse with the summary

For specific information queries:
1. If documents exist: call retrieveSimilar with the query and topK 3
2. If no documents exist: call createThenRetrieve with the query and topK 3
3. Then provide a finalResponse with the answer

For database operations:
- Call clearAllData when the user wants to clear data
- Call retrieveAllDocs when the user wants to see all documents
- Call checkDatabaseHealth when the user asks about the database status

STATUS MEANINGS:
- "continue": More function calls needed
- "retry": Retry the same function with different parameters
- "done": Ready to provide the final response

CRITICAL REQUIREMENTS:
- Return ONLY valid JSON
- No text before or after the JSON
- No markdown code blocks around the JSON
- No comments in the JSON
- Use double quotes for all strings
- Choose exactly ONE type per response

USER QUERY: {query}

RESPOND WITH VALID JSON ONLY:"""

FINAL_ANSWER_INSTRUCTION = (
    "Please provide the final answer to the user based on all the collected information."
)

FALLBACK_NO_DATA = (
    "I encountered issues processing the documents. Please ensure documents are uploaded and try again."
)

MAX_STEPS_MESSAGE = (
    "The document processing took too long to complete. "
    "Please try a simpler query or check your documents."
)


def format_tool_catalog(catalog: list[dict[str, Any]]) -> str:
    lines = []
    for i, tool in enumerate(catalog, 1):
        args = ", ".join(f"{k}: {v}" for k, v in (tool.get("args") or {}).items())
        lines.append(f"{i}. {tool['name']}({args})\n   - {tool['description']}")
    return "\n\n".join(lines)


def build_system_prompt(query: str, catalog: list[dict[str, Any]]) -> str:
    # json.dumps quotes and escapes the query so it cannot break the prompt layout
    return SYSTEM_PROMPT.format(tool_catalog=format_tool_catalog(catalog), query=json.dumps(query))


def tool_feedback(name: str, success: bool, count: int, context: str, error: str | None) -> str:
    """User-role message telling the model what the tool produced."""
    if not success:
        return f"Function {name} failed: {error or 'unknown error'}. What should we do next?"
    feedback = f"Function {name} executed. "
    if context:
        feedback += f"Found {count or 'some'} relevant documents. "
    else:
        feedback += "No relevant documents found. "
    return feedback + "What should we do next?"


def corrective_instruction(error: str) -> str:
    return (
        f"Your previous response was invalid. Error: {error}. "
        "Please respond with valid JSON format containing type and response fields, strictly "
        'matching the required format. Remember: type can be "functionCall" or "finalResponse".'
    )


def fallback_answer(accumulated: str, limit: int) -> str:
    accumulated = accumulated.strip()
    if not accumulated:
        return FALLBACK_NO_DATA
    return f"I found some information in the documents: {accumulated[:limit]}..."
