"""
Prompts for LLMRelationProposer - connections and syntheses between thought nodes
"""

RELATION_PROPOSAL_SYSTEM_PROMPT = """You are a thought aggregation specialist.
You analyse how thoughts relate to each other and combine related thoughts into new,
higher-order thoughts, the way synapses link related ideas.

Quality criteria:
- relevance: connections and syntheses must relate to the original query
- novelty: a synthesized thought adds insight beyond summarising its inputs
- coherence: connections are semantically consistent and logical
- diversity: explore different kinds of connection patterns"""

RELATION_PROPOSAL_USER_PROMPT = """
Original query:
"{query}"

Thought nodes:
{nodes}

Existing connections:
{existing_connections}

Analyse the relationships between these nodes, connect the ones that are meaningfully
related (strength between 0.0 and 1.0), and synthesize new thoughts from connected nodes.
Only use node ids listed above.

IMPORTANT: Respond with valid JSON only, using this structure:

{{
  "connections": [
    {{
      "sourceNodeId": "id of the first thought",
      "targetNodeId": "id of the second thought",
      "strength": 0.85,
      "reasoning": "Why these nodes belong together"
    }}
  ],
  "synthesizedThoughts": [
    {{
      "nodeIds": ["id of the first thought", "id of the second thought"],
      "content": "New thought synthesized from the connected nodes",
      "confidence": 0.9
    }}
  ]
}}
"""
