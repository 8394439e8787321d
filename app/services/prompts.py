"""Instruction templates sent to the vision model."""

import re
from typing import List

SECTION_HEADINGS = (
    "### 1. App Overview",
    "### 2. Core Features",
    "### 3. User Stories",
    "### 4. Tech Stack Suggestions",
    "### 5. UI/UX Design Guidelines",
    "### 6. Data Model / Schema",
)

SYSTEM_ROLE = "You are an expert software engineering project manager and prompt engineer."

PROMPT_STRUCTURE = f"""
The prompt you generate MUST be structured with the following sections in Markdown format:

{SECTION_HEADINGS[0]}
A brief, high-level summary of the application's purpose and main goal.

{SECTION_HEADINGS[1]}
A detailed, numbered list of all the features described or implied. For each feature, explain what it does and how the user might interact with it.

{SECTION_HEADINGS[2]}
Write a few user stories in the format: "As a [user type], I want to [action] so that [benefit]." If the user type isn't specified, use a general persona like "As a user...".

{SECTION_HEADINGS[3]}
Based on the app's requirements, suggest a suitable tech stack. Default to a modern stack like Frontend: React with TypeScript and Tailwind CSS; Backend: Node.js with Express; Database: PostgreSQL, but adjust if the video implies other needs. Justify your choices briefly.

{SECTION_HEADINGS[4]}
Describe the visual style, color palette, and layout principles mentioned or shown. If not specified, suggest a modern, clean, and user-friendly design aesthetic (e.g., "minimalist with a dark theme and a single accent color").

{SECTION_HEADINGS[5]}
Propose a basic database schema or data model. Outline the main tables/collections, their fields (with types), and their relationships.

Your final output should be ONLY the generated prompt in clean Markdown. Do not include any of your own conversational text, greetings, or explanations before or after the prompt. Start directly with "{SECTION_HEADINGS[0]}".
"""


def frames_instruction() -> str:
    return f"""
Analyze the following sequence of video frames. The user is describing or showing a concept for a web application they want to build.
Based on the visuals (like drawings, wireframes, existing apps, gestures) and any visible text in these frames, generate a comprehensive and detailed prompt that a developer could give to another AI to create this application.
{PROMPT_STRUCTURE}"""


def video_url_instruction(url: str) -> str:
    return f"""
A user has provided the following video URL: {url}
Your task is to use your search capabilities to understand the content of this video. Based on the video's topic, title, description, and likely content, infer the web application idea the user is trying to conceptualize. Then, generate a comprehensive and detailed prompt that a developer could give to another AI to create this application.
{PROMPT_STRUCTURE}"""


def refine_instruction(original_prompt: str, feedback: str) -> str:
    headings = "\n".join(SECTION_HEADINGS)
    return f"""
Your task is to refine an existing project prompt based on user feedback.
The user wants to modify the following prompt:

---
**ORIGINAL PROMPT:**
{original_prompt}
---

**USER'S REFINEMENT REQUEST:**
"{feedback}"

Your goal is to generate a new, complete prompt that incorporates the user's request.
You MUST maintain the exact same Markdown structure as the original prompt, keeping these headings verbatim and in this order:
{headings}
Do not add any conversational text, greetings, or explanations before or after the refined prompt. Output ONLY the complete, refined prompt in clean Markdown.
"""


_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n(.*?)\n?```\s*$", re.DOTALL)


def clean_markdown(text: str) -> str:
    """Strip a wrapping code fence and any chatter before the first section heading."""
    text = text.strip()
    fenced = _FENCE.match(text)
    if fenced:
        text = fenced.group(1).strip()
    start = text.find(SECTION_HEADINGS[0])
    if start > 0:
        opened_fence = "```" in text[:start]
        text = text[start:].rstrip()
        if opened_fence and text.endswith("```"):
            text = text[:-3].rstrip()
    return text


def missing_sections(markdown: str) -> List[str]:
    """Return expected headings absent from `markdown` or out of order."""
    missing = []
    cursor = 0
    for heading in SECTION_HEADINGS:
        position = markdown.find(heading, cursor)
        if position < 0:
            missing.append(heading)
        else:
            cursor = position + len(heading)
    return missing
