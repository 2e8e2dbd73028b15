"""
Prompts for the research loop - analysis of gathered information, planning and reporting
"""

ANALYSIS_SYSTEM_PROMPT = """You are a research analyst. You judge whether the information gathered
so far is enough to answer a question, and if not, what is still missing."""

ANALYSIS_USER_PROMPT = """
Original question:
{query}

Iteration {iteration} of {max_iterations}.

Information gathered so far:
{gathered}

Decide whether the question can be answered thoroughly with this information.
List what is still missing and propose at most {max_follow_up_queries} follow-up search queries.

IMPORTANT: Respond with valid JSON only, using this structure:

{{
  "is_information_sufficient": false,
  "missing_information": ["What is still unknown"],
  "follow_up_queries": ["A focused search query"],
  "confidence": 0.6,
  "summary": "Two or three sentences on what is known so far"
}}
"""

PLAN_SYSTEM_PROMPT = """You are a research planner. You turn a selected line of reasoning into a
concrete research plan of subtopics and search queries."""

PLAN_USER_PROMPT = """
Original query:
{query}

Selected approach (score {score:.2f}):
{selected_thought}

Produce a plan with at most {max_subtopics} subtopics and {max_queries} search queries.

IMPORTANT: Respond with valid JSON only, using this structure:

{{
  "approach": "Name of the approach",
  "subtopics": ["Subtopic"],
  "queries": ["Search query"]
}}
"""

REPORT_SYSTEM_PROMPT = """You are a research writer. You write a clear, well-structured report
that answers the question using only the gathered information and synthesized insights."""

REPORT_USER_PROMPT = """
Original question:
{query}

Gathered information:
{gathered}

Synthesized insights:
{insights}

Write the final report.

IMPORTANT: Respond with valid JSON only, using this structure:

{{
  "title": "Report title",
  "summary": "Executive summary in 2-3 sentences",
  "content": "Full report body in markdown"
}}
"""
