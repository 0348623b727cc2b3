REFINE_PROMPT = """
Reconsideration -> Revised Idea Output Prompt
Instruction for the Agent

Using:
- the original report,
- your prior analysis and conclusions, and
- the user's notes and annotations,
re-evaluate assumptions and adjust the idea without introducing new external data. Then synthesize the updated thinking into a clear, concise, well-formed idea statement that reflects improved product-market alignment.

The goal is not to defend the original idea, but to adapt it into the strongest possible version given the evidence and feedback. We also need to answer the exact same questions we posed in the first place, as in answer each heading.

Base material (represents the original report + prior analysis; do not add any new external facts):
{BASE_TEXT}

Existing ApiResponse JSON (this is the current set of cards you MUST update; treat as authoritative structure):
{BASE_JSON}

User feedback (notes + annotations):
{USER_TEXT}

Original idea (user input):
{ORIGINAL_IDEA}

Output format (STRICT):
Return a single JSON object with required keys: "aiResponse", "modifiedIdea", and "cards".

aiResponse MUST be MAXIMUM 3 sentences total.
Rules for aiResponse:
- No headings, no numbering, no bullets.
- No new external facts.
- It should crisply summarize the revised idea + fit in 3 sentences.

modifiedIdea MUST be a revised version of the user's Original idea that is safe to place back into the input box.
Rules for modifiedIdea:
- It must be meaningfully different from the original idea text.
- Keep it short (1-3 sentences).
- It must not add new external facts.

Each card MUST match this TypeScript type:
ApiCard = {
  id: string;
  label: string;
  value: string;
  type: "metric" | "image" | "testimonial" | "chart-bar" | "chart-ring" | "chart-progress";
  category: "market" | "idea";
  subcategory: string;
  detail: { title: string; summary: string; points: string[]; source: string; };
  author?: string;
  quote?: string;
}

Rules for cards:
- Update ALL the cards to reflect the revised idea and updated assumptions.
- Answer all the topics!
- Do NOT introduce any new external facts. Only re-interpret/re-weight what's already in base material + user notes.
- Keep sources as: "IBISWorld report (Jan 2026)", "Prior context", or "Synthesis".
- Use subcategory exactly as one of:
  "Problem & Demand" | "Market & Competition" | "Feasibility & Risk" | "Product & Strategy" | "Market Readiness & Validation" | "SWOT" | "Market Sizing"
- CRITICAL REWRITE CONSTRAINTS (the new cards must be completely different in wording):
    - For every card, rewrite ALL user-facing text fields: label, value, detail.title, detail.summary, and every item in detail.points.
    - Do not copy any sentences or bullet points from the Existing ApiResponse JSON. Avoid reusing exact phrases.
    - No text field may be identical to the corresponding field in the Existing ApiResponse JSON for that same card id.
    - You may keep the same id/type/category/subcategory, but the card's written content must be substantially rewritten.
- CRITICAL: Return EXACTLY {CARD_COUNT} cards, with the EXACT SAME card ids as the existing ApiResponse JSON, and update their content in-place. Do not add/remove cards.
- Required card ids (must match exactly): {REQUIRED_IDS}
- Output must be strictly parseable JSON. No markdown. No extra keys.
""".strip()


JSON_REPAIR_PROMPT = """
Your previous output above could not be parsed.
Fix it into a single STRICT JSON object that matches the required schema
(keys "aiResponse", "modifiedIdea", "cards").
Return ONLY JSON. No markdown, no code fences, no commentary.
""".strip()


ID_REPAIR_PROMPT = """
You returned the wrong card set.
You MUST return exactly {CARD_COUNT} cards with the exact same ids as the existing ApiResponse JSON.
Return ONLY a single JSON object with keys aiResponse, modifiedIdea and cards.

Required ids: {REQUIRED_IDS}

Your previous (incorrect) output is the message above; fix it without adding new external facts.
""".strip()


REWRITE_PROMPT = """
Rewrite the following JSON so that every card's text content is substantially different from before.
Keep EXACTLY the same card ids/count. Return ONLY JSON with keys aiResponse, modifiedIdea, cards.
Do NOT introduce any new external facts.
Critical: label/value/detail.title/detail.summary/detail.points must all be rewritten for every card.

Current (insufficiently rewritten) JSON:
{CURRENT_JSON}
""".strip()
