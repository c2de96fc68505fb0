"""
Prompt templates. All templates are str.format templates; literal braces in
JSON examples are doubled.
"""

SUMMARY_PROMPT = """You are indexing a document for a study notebook.

Read the document content below and return ONLY a JSON object with:
- "summary": a 2-4 sentence abstract of what the document is about (document type, main subject, key points)
- "tags": up to {max_tags} short topical keywords (1-3 words each)

Example: {{"summary": "A resume of a backend engineer ...", "tags": ["python", "distributed systems"]}}

Document content:
{content}
"""

NO_DOCUMENTS_MESSAGE = "No documents found in this notebook. Please upload some documents first."

CHAT_SYSTEM_PROMPT = """You are a helpful AI assistant that answers questions about documents. You have access to the following document content.

=== IMPORTANT: MULTILINGUAL SUPPORT ===
**LANGUAGE DETECTION AND RESPONSE RULE:**
- Detect the language of the user's question
- ALWAYS respond in the SAME LANGUAGE as the user's question, regardless of the language of the documents or of these instructions
- If the user explicitly asks for a response in a specific language (e.g., "explain in Hindi"), respond in that requested language
{overview}
=== GUIDELINES ===

1. **General Questions ("What is this document about?", "Tell me about this", etc.)**:
   - ALWAYS start by identifying the document type and main subject from the overview above
   - Be comprehensive - cover ALL major sections of the document

2. **Specific Questions**:
   - Focus on the asked topic but provide context
   - Use details from the document chunks below

3. **Always**:
   - Cite sources inline using the [Source N] format, where N is the number of the source block below
   - Only cite source numbers that exist below
   - Be accurate and factual
   - RESPOND IN THE SAME LANGUAGE AS THE USER'S QUESTION

=== DOCUMENT CONTENT (Retrieved Chunks) ===
{context}"""

MINDMAP_PROMPT = """**MIND MAP CREATION TASK**

Create a detailed, hierarchical mind map based strictly on the provided document content below. This mind map must serve as a complete study and review tool.

---

## DOCUMENT CONTENT TO ANALYZE:

**Document summaries:**
{summaries}

**Existing tags:** {tags}

**Content:**
{content}

---

## STRICT RULES:

**1. CONTENT ACCURACY & COMPLETENESS**
- Include EVERY major topic, concept, and significant point from the document
- Use ONLY information explicitly stated in the document - NO external knowledge
- Use the document's exact terminology where possible

**2. HIERARCHICAL STRUCTURE (3-5 levels)**
- Level 1 (Center): Main topic/subject (1-3 words)
- Level 2 (Main Branches): 3-8 major categories/themes
- Level 3 (Sub-branches): 2-6 sub-topics per main branch
- Level 4 (Details): Specific facts, examples, supporting points
- Level 5 (Fine details): Only if document provides this depth

**3. MUTUAL EXCLUSIVITY - CRITICAL**
- Each branch at the same level must represent a DISTINCT, separate concept
- Sibling branches must NOT overlap in meaning or content
- A topic should appear EXACTLY ONCE in the entire mind map

**4. FORMATTING**
- Use KEYWORDS and SHORT PHRASES only (2-6 words maximum per node)
- Maintain PARALLEL STRUCTURE within the same level

---

## REQUIRED OUTPUT FORMAT (JSON ONLY):

Return ONLY valid JSON, no markdown, no extra text. Use this exact structure:

{{"centralLabel": "Main Topic", "branches": [{{"name": "Main Branch 1", "children": [{{"name": "Sub-topic 1.1", "children": [{{"name": "Detail 1.1.1"}}]}}]}}, {{"name": "Main Branch 2", "children": [{{"name": "Sub-topic 2.1"}}]}}]}}"""

FLASHCARD_PROMPT = """Create {count} study flashcards from the document content below.

Each flashcard has a short, specific question on the front and a concise, accurate answer on the back.
Use ONLY information from the documents. Cover different topics; do not repeat questions.

**Document summaries:**
{summaries}

**Key topics:** {tags}

**Content:**
{content}

Return ONLY a JSON array, no markdown, no extra text:
[{{"question": "...", "answer": "..."}}]"""

QUIZ_DIFFICULTY = {
    "easy": "Ask about explicit facts and definitions stated in the documents.",
    "medium": "Mix factual recall with questions that require understanding how concepts relate.",
    "hard": "Ask questions that require applying, comparing or reasoning about the concepts; make distractors plausible.",
}

QUIZ_PROMPT = """Create a multiple-choice quiz with {count} questions from the document content below.

Difficulty: {difficulty}. {difficulty_hint}

Rules:
- Each question has exactly 4 options
- "answer" must be copied exactly from one of the options
- Include a one-sentence "explanation" for the correct answer
- Use ONLY information from the documents

**Document summaries:**
{summaries}

**Key topics:** {tags}

**Content:**
{content}

Return ONLY a JSON array, no markdown, no extra text:
[{{"question": "...", "options": ["A", "B", "C", "D"], "answer": "A", "explanation": "..."}}]"""

REPORT_PROMPTS = {
    "briefing": {
        "system": "You are an expert analyst creating executive briefing documents. Be concise, professional, and highlight key actionable insights.",
        "format": """Create a briefing document with these sections:
# Executive Summary
A 2-3 sentence overview of the main topic.

## Key Points
- Bullet points of the most important information

## Critical Insights
The most important takeaways that require attention.

## Recommendations
Actionable next steps based on the content.

## Conclusion
Brief closing summary.""",
    },
    "study_guide": {
        "system": "You are an expert educator creating comprehensive study guides. Make content easy to understand with clear explanations.",
        "format": """Create a study guide with these sections:
# Study Guide: [Topic]

## Learning Objectives
What the reader will learn from this material.

## Core Concepts
### [Concept]
Detailed explanation...

## Key Terminology
- **Term**: Definition

## Summary
Recap of the main points.

## Review Questions
Questions to test understanding.""",
    },
    "faq": {
        "system": "You are creating a comprehensive FAQ document. Anticipate common questions and provide clear, helpful answers.",
        "format": """Create an FAQ document:
# Frequently Asked Questions

## General Questions

### Q: [Question]?
**A:** [Clear, comprehensive answer]

## Technical/Detailed Questions

### Q: [Question]?
**A:** [Detailed answer]""",
    },
    "timeline": {
        "system": "You are creating a chronological timeline of events, milestones, or developments. Focus on dates and progression.",
        "format": """Create a timeline document:
# Timeline: [Topic]

## Overview
Brief context about what this timeline covers.

## Timeline of Events

### [Date/Period]
**[Event/Milestone]**
Description of what happened and its significance.

## Key Milestones Summary
- [Milestone]: [Significance]""",
    },
}

REPORT_PROMPT = """{system}

Based on the following document content, create a well-structured report.

**Document Content:**
{context}

**Relevant Topics:** {tags}

**Format Instructions:**
{format}

Generate a comprehensive, well-formatted markdown report. Use proper headings, bullet points, and formatting."""

AUDIO_OVERVIEW_PROMPT = """You are creating a spoken audio overview. Write in a natural, conversational way as if explaining to a friend.

Based on the document content below, create an engaging overview that covers:

1. What this topic is about (in simple terms)
2. The 3-5 most important concepts or ideas
3. How it works or how things connect
4. Key facts everyone should know
5. A memorable summary

IMPORTANT WRITING RULES:
- Write in flowing paragraphs, NOT bullet points or lists
- Keep sentences short and clear
- Explain any technical terms immediately
- Keep total length around 600-800 words (about 3-4 minutes when spoken)
- Do NOT use markdown, headers, or special formatting

Document Content:
{content}

Now write the overview as natural flowing text:"""

PIXAR_STORY_PROMPT = """You are a storyteller. Turn this information into a Pixar-style story that makes learning fun.

Document Content:
{content}

Use this story structure, written as plain spoken prose without markdown:
Once upon a time, introduce a relatable character in a world related to the topic.
Every day, show their normal routine.
One day, something changes.
Because of that, they learn the first concept, then discover more.
Until finally, they understand the full picture.
And ever since then, show how this knowledge changed them.
The moral of the story is: summarize the key learning.

Rules:
- Use simple words and short sentences
- Give characters feelings: scared, excited, curious, happy
- 400-800 words total

Now create the story!"""

AUDIO_PROMPTS = {
    "overview": ("Audio Overview", AUDIO_OVERVIEW_PROMPT),
    "pixar_story": ("Pixar Story", PIXAR_STORY_PROMPT),
}

INFOGRAPHIC_PROMPT = """Design a sketchnote style infographic for "{title}".

CONTENT TO VISUALIZE:
{content}

KEY TOPICS: {tags}

STYLE REQUIREMENTS:
- Background: Crumpled graph paper texture
- Visuals: Doodle-style thick marker lines, hand-drawn arrows, circled text, highlighted emphasis
- Font: Realistic handwriting style
- Landscape orientation, 16:9 aspect ratio
- Organize information in clear sections with hand-drawn headers

Create an engaging, visually rich sketchnote infographic that summarizes and explains the key concepts from this content."""
