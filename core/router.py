from langchain_core.prompts import ChatPromptTemplate

from core.models import QueryIntent

INTENT_SYSTEM_PROMPT = """
You are an intent classifier for a Nestlé product and recipe chatbot.
Analyze the user's query and extract:
- entityType: what type of thing the user is asking about. One of: product, recipe, ingredient, category, brand.
- entityName: the specific name of the entity they are asking about, if any.
- action: what they want to do or know (find, learn about, get details, compare, etc.).

Leave a field empty when it does not apply. Do not guess an entity name that is not in the query.
"""


def get_intent_chain(llm):
    """Creates an LLM chain that classifies what a query is about."""
    structured_llm = llm.with_structured_output(QueryIntent)
    prompt = ChatPromptTemplate.from_messages([
        ("system", INTENT_SYSTEM_PROMPT),
        ("human", "{question}"),
    ])
    return prompt | structured_llm
