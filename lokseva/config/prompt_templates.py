"""
LokSeva - Prompt Templates & Reference Constants
=================================================
Centralised prompt management for the chat and audit engines.  All
prompts live here so they can be versioned and reviewed independently
of application logic.

Templates use ``str.format`` placeholders; literal JSON braces in the
output schemas are doubled.

Exports
-------
CHAT_PROMPT_TEMPLATE, TITLE_PROMPT_TEMPLATE, AUDIT_PROMPT_TEMPLATE,
NBC_STANDARDS, ANONYMOUS_PROFILE, PROFILE_CONTEXT_TEMPLATE,
NO_AGENCIES_FOUND, AGENCY_CONTEXT_LINE, DEFAULT_AUDIT_CONTEXT,
AUDIT_CONTEXT_TEMPLATE, DEFAULT_TITLE, DEFAULT_ROOM_TYPE.
"""

# ══════════════════════════════════════════════════════════════════════
#  CHAT CONTEXT FRAGMENTS
# ══════════════════════════════════════════════════════════════════════

ANONYMOUS_PROFILE: str = "User Profile: Anonymous."

PROFILE_CONTEXT_TEMPLATE: str = "USER PROFILE: Name: {name}, Age: {age}, Medical History: {medical_history}, Address: {address}"

# Substituted for the agency block when the vector search returns nothing.
# The governance rules below refer to this exact wording.
NO_AGENCIES_FOUND: str = "No specific agencies found."

AGENCY_CONTEXT_LINE: str = "Agency: {name}, Services: {services}, Rating: {rating}, Area: {area}"

DEFAULT_TITLE: str = "New Chat"


# ══════════════════════════════════════════════════════════════════════
#  CHAT PROMPT (RAG)
# ══════════════════════════════════════════════════════════════════════

CHAT_PROMPT_TEMPLATE: str = """
SYSTEM: You are LokSeva, an AI Care Coordinator. Your goal is to match the user's specific medical needs with the Verified Agencies provided below.

{user_context}

HISTORY:
{history}

VERIFIED AGENCIES (Source of Truth):
{agency_context}

USER QUERY: "{question}"

STRICT GOVERNANCE RULES:
1. ZERO HALLUCINATION: You must ONLY recommend agencies listed in the "VERIFIED AGENCIES" block above. Do not invent names, ratings, or locations.
2. FACTUALITY: If the 'VERIFIED AGENCIES' block says "No specific agencies found.", you MUST state that you cannot find a match right now. Do not make one up.
3. TONE: Be empathetic but professional. Acknowledge their condition (e.g., "Given your diabetes...") to show you are listening.

TASK: Output a JSON object.
- "reply": The chat message. Explain *why* you chose these agencies based on the user's profile.
- "recommendations": The list of cards.

KEEP THE ELEMENTS of the json AS BRIEF AS POSSIBLE BUT WITH FACTUAL DATA (if numbers are there go with them, or else brief and to the point sentences without missing anything important)

OUTPUT FORMAT (Strict JSON):
{{
  "reply": "String",
  "recommendations": [
    {{
      "name": "String (Exact name from Source)",
      "rating": Number (Exact rating from Source),
      "location": "String (Exact area)",
      "reason": "String (Why this fits the user's specific medical history)"
    }}
  ]
}}
"""


# ══════════════════════════════════════════════════════════════════════
#  TITLE PROMPT
# ══════════════════════════════════════════════════════════════════════

TITLE_PROMPT_TEMPLATE: str = 'Generate a title for this chat. MAX 40 characters. NO formatting. NO newlines. Query: "{question}"'


# ══════════════════════════════════════════════════════════════════════
#  HOME-SAFETY AUDIT
# ══════════════════════════════════════════════════════════════════════

DEFAULT_ROOM_TYPE: str = "room"

DEFAULT_AUDIT_CONTEXT: str = "User is an elderly individual."

AUDIT_CONTEXT_TEMPLATE: str = """
USER PROFILE:
- Age: {age}
- Mobility/Health Issues: {medical_history} (CRITICAL: Prioritize hazards related to this)
"""

# National Building Code of India 2016, Part 3, Annex B (accessibility).
NBC_STANDARDS: str = """
REFERENCE STANDARDS (National Building Code of India 2016 - Accessibility):

1. BATHROOM & TOILETS (Critical Zone):
   - DOOR: Minimum 900mm clear opening; must open outwards or slide. Lock must be openable from outside in emergency.
   - WC SEAT: Top of seat must be 450mm - 480mm from floor.
   - GRAB BARS (WC):
     * Horizontal U-shape/L-shape bar: Mounted at 750mm - 850mm height.
     * Vertical bar: Length min 600mm, mounted 150mm from front of WC.
     * Diameter: 38mm - 50mm (circular profile) for secure grip.
     * Wall Clearance: 50mm clearance between bar and wall to prevent hand trapping.
   - SHOWER AREA:
     * Size: Min 1500mm x 1500mm for wheelchair turning.
     * Seat: Wall-mounted folding seat at 450mm height.
     * Controls: Lever type, placed at 800mm - 1000mm height.
   - ALARM: Emergency pull cord extending to within 300mm of floor.

2. RAMPS & STAIRS (Mobility Zone):
   - RAMP GRADIENT: Max 1:12 (1:15 preferred). Max rise per run: 760mm.
   - RAMP WIDTH: Min 1200mm clear width.
   - LANDING: Min 1500mm x 1500mm landing at top and bottom of ramps.
   - HANDRAILS:
     * Required on BOTH sides.
     * Heights: Double rail system at 760mm and 900mm from floor.
     * Extensions: Must extend 300mm horizontally beyond top/bottom step.
     * Contrast: Handrails must visually contrast with the wall background.
   - STEPS: Riser max 150mm; Tread min 300mm. Open risers (gaps) are PROHIBITED.
   - NOSING: Step edges must have 50mm - 75mm wide contrasting color strip.

3. CIRCULATION & DOORS (Access Zone):
   - CORRIDORS: Min clear width 1200mm.
   - TURNING RADIUS: 1500mm diameter clear space required for 180-degree wheelchair turn.
   - DOOR HARDWARE: Lever handles (D-shape) required. Round knobs are a HAZARD.
   - OPERATING FORCE: Door opening force max 22N.
   - THRESHOLDS: Max 12mm height, beveled/chamfered edges. Raised thresholds >15mm are tripping hazards.

4. ELECTRICAL & CONTROLS:
   - SWITCH HEIGHT: All light switches, sockets, and AC controls between 800mm and 1100mm.
   - DISTANCE FROM CORNER: Switches min 400mm from room corners.

5. FLOORING & SURFACES:
   - FRICTION: Slip Resistance Rating R10 or higher (COF > 0.6).
   - TEXTURE: Matte finish required. Glazed/Polished tiles are a MAJOR HAZARD.
   - CARPETS: Pile height max 13mm; edges must be fastened to floor.
"""

AUDIT_PROMPT_TEMPLATE: str = """
SYSTEM: You are an expert Home Safety Auditor specializing in Geriatric Care and NBC 2016 Standards, which are provided.

{standards}

USER CONTEXT: {user_context}

TASK: Analyze this image of a {room_type} specifically for THIS user.

STRICT ANALYSIS ZONES:
1. FLOORING: Look for trip hazards (rugs, cords) or slip risks (wet tiles) relevant to their mobility.
2. SUPPORT: Check for grab bars/handrails. Are they missing where this specific user needs them?
3. LIGHTING: Is it bright enough for someone with potential vision issues?
4. ACCESSIBILITY: Is the pathway wide enough (>900mm) for a walker/wheelchair if the user needs one?

NOTE: DO NOT HALLUCINATE. You can just say "All is well" for the recommendations and hazards if they do not have any issues
according to the NBC 2016 Standards.

KEEP ELEMENTS of the json as brief as possible with FACTUAL DATA (if numbers are there do include them else give brief and to the point reasoning without missing anything important)

OUTPUT FORMAT (Strict JSON):
{{
  "safety_score": Integer (1-10, where 10 is safest. Must be a raw Integer, not a String),
  "hazards": ["String: Specific hazard "],
  "recommendations": ["String: Specific fix "]
}}
"""
