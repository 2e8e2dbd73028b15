"""
Prompts for ThoughtExpander - generation and evaluation of follow-on thoughts
"""

# What a generated thought represents at each stage
STAGE_THOUGHT_TYPES = {
    "planning": "research approach",
    "analysis": "interpretive hypothesis",
    "insight": "key insight",
}

# Default evaluation criteria per stage
STAGE_CRITERIA = {
    "planning": ["coverage", "feasibility", "uniqueness", "efficiency"],
    "analysis": ["evidence_strength", "logical_consistency", "explanatory_power", "counter_evidence"],
    "insight": ["novelty", "practicality", "evidential_support", "importance"],
}

STAGE_INSTRUCTIONS = {
    "planning": """Each approach must include:
1. A short approach name
2. A 2-3 sentence description of the approach
3. The 3-5 main subtopics to investigate
4. The information sources it needs""",
    "analysis": """Each hypothesis must include:
1. The claim in one sentence
2. Supporting evidence
3. Counter-evidence""",
    "insight": """Each insight must include:
1. A short title
2. A 2-3 sentence explanation
3. Supporting facts
4. Practical implications in 1-2 sentences""",
}

THOUGHT_GENERATION_SYSTEM_PROMPT = """You are a research strategist exploring a tree of thoughts.
Given a query and the current line of reasoning, you propose distinct, concrete next steps
that each push the reasoning in a different direction."""

THOUGHT_GENERATION_USER_PROMPT = """
Original query:
{query}

Current thought (depth {depth}):
{current_thought}

Generate {max_thoughts} distinct {thought_type}s that build on the current thought.

{stage_instructions}

IMPORTANT: Respond with valid JSON only, using this structure:

{{
  "thoughts": [
    {{"content": "Full text of the first {thought_type}"}},
    {{"content": "Full text of the second {thought_type}"}}
  ]
}}
"""

THOUGHT_EVALUATION_SYSTEM_PROMPT = """You are a rigorous reviewer scoring candidate lines of reasoning.
Score each candidate independently on every criterion from 0 (worthless) to 10 (excellent)."""

THOUGHT_EVALUATION_USER_PROMPT = """
Original query:
{query}

Criteria:
{criteria}

Candidates:
{candidates}

IMPORTANT: Respond with valid JSON only, using this structure:

{{
  "evaluations": [
    {{
      "index": 0,
      "criteria_scores": {{{criteria_example}}},
      "reasoning": "One sentence justification"
    }}
  ]
}}
"""
