from __future__ import annotations

from interview_engine.interview.models import InterviewContext, Question, ResponseRecord
from interview_engine.speech.voice_analysis import VoiceAnalysis

# ----------- Interviewer Personalities -----------

PERSONALITY_PROMPTS = {
    "strict": """
You are a demanding technical interviewer from a top-tier engineering organisation.

Your style:
- Ask probing questions that expose real understanding.
- Never accept surface-level answers; push for depth, edge cases and precision.
- Keep the conversation focused and efficient.
- Give direct, constructive feedback and hold a high bar throughout.
""",
    "friendly": """
You are a supportive, encouraging interviewer who keeps the candidate at ease.

Your style:
- Keep the tone relaxed and conversational.
- Offer hints when the candidate is stuck and build on good points.
- Frame feedback positively while staying honest.
- Encourage the candidate to think out loud and learn from mistakes.
""",
    "professional": """
You are a balanced, professional interviewer representing a respected company.

Your style:
- Ask clear, well-scoped questions with enough context.
- Stay objective and consistent when judging answers.
- Give balanced feedback covering strengths and areas to improve.
- Keep insights actionable and respect the candidate's time.
""",
}

PERSONALITY_TONES = {
    "strict": "rigorous and challenging",
    "friendly": "supportive and encouraging",
    "professional": "professional and balanced",
}

PERSONALITY_TEMPERATURES = {
    "strict": 0.5,
    "friendly": 0.8,
    "professional": 0.7,
}

# ----------- Interview Types -----------

INTERVIEW_TYPE_PROMPTS = {
    "technical": """
TECHNICAL INTERVIEW FOCUS:
- Data structures, algorithms, system fundamentals and language concepts.
- Judge correctness, complexity analysis, edge cases and problem decomposition.
- Progress from conceptual questions to implementation and optimisation.
""",
    "behavioral": """
BEHAVIORAL INTERVIEW FOCUS:
- Evaluate answers with the STAR method (Situation, Task, Action, Result).
- Cover leadership, conflict resolution, failure and learning, prioritisation,
  communication and adaptability.
- Prefer specific examples over generalisations; look for self-awareness.
""",
    "hr": """
HR INTERVIEW FOCUS:
- Motivation, career goals, role and culture fit, work style and expectations.
- Judge genuine interest, clarity of trajectory and professional communication.
""",
    "system-design": """
SYSTEM DESIGN INTERVIEW FOCUS:
- Requirements, capacity estimates, high-level design, component deep dives,
  trade-offs and scalability.
- Cover caching, load balancing, data modelling, partitioning, consistency and
  failure handling.
- Scale ambition with difficulty: CRUD apps at easy, global-scale systems at expert.
""",
}

COMPANY_PROMPTS = {
    "google": "GOOGLE-STYLE: emphasise algorithms, optimal solutions and comparing approaches.",
    "amazon": "AMAZON-STYLE: weave in leadership principles, ownership and customer obsession.",
    "meta": "META-STYLE: stress scale, product sense and impact-focused solutions.",
    "microsoft": "MICROSOFT-STYLE: value growth mindset, collaboration and design depth.",
}

ACKNOWLEDGEMENT_TURN = (
    "I understand my role as an AI interviewer. I am ready to conduct the interview based on "
    "the specified parameters. I will adapt my questions based on the candidate's responses "
    "and provide constructive feedback."
)

RESPONSE_FORMAT = """
RESPONSE FORMAT:
Always reply with valid JSON shaped like:
{
  "type": "question|feedback|follow_up|summary",
  "content": "your response text",
  "difficulty": "easy|medium|hard|expert",
  "expectedTopics": ["topic1", "topic2"],
  "hints": ["hint1"],
  "adjustDifficulty": "increase|decrease|maintain"
}
"""


def personality_temperature(personality: str | None) -> float:
    return PERSONALITY_TEMPERATURES.get(str(personality or ""), 0.7)


def _company_modifier(target_company: str | None) -> str:
    key = str(target_company or "").strip().lower()
    return COMPANY_PROMPTS.get(key, "")


def build_system_prompt(context: InterviewContext) -> str:
    personality = context.personality if context.personality in PERSONALITY_PROMPTS else "professional"
    base_prompt = PERSONALITY_PROMPTS[personality].strip()
    type_prompt = INTERVIEW_TYPE_PROMPTS.get(context.interview_type, INTERVIEW_TYPE_PROMPTS["technical"]).strip()
    skills = ", ".join(context.skills) if context.skills else "Not specified"
    experience = context.experience_years
    experience_text = str(int(experience)) if float(experience).is_integer() else str(experience)

    sections = [
        base_prompt,
        f"""INTERVIEW CONFIGURATION:
- Type: {str(context.interview_type).upper()} Interview
- Difficulty Level: {context.difficulty}
- Target Company: {context.target_company or 'General'}
- Target Role: {context.target_role or 'Software Engineer'}
- Candidate Experience: {experience_text} years
- Candidate Skills: {skills}""",
        type_prompt,
    ]
    company = _company_modifier(context.target_company)
    if company:
        sections.append(company)
    sections.append(
        f"""IMPORTANT GUIDELINES:
1. Adjust question difficulty to the candidate's performance.
2. Raise complexity after strong answers; simplify or hint after weak ones.
3. Ask follow-up questions grounded in the candidate's previous answers.
4. Be {PERSONALITY_TONES[personality]}.
5. Evaluate correctness, reasoning depth, structure and communication clarity.
6. Track the topics covered and identify gaps."""
    )
    sections.append(RESPONSE_FORMAT.strip())
    return "\n\n".join(sections)


def _topics_covered(previous: list[ResponseRecord]) -> str:
    topics: list[str] = []
    for record in previous:
        for topic in record.topics_covered:
            if topic not in topics:
                topics.append(topic)
    return ", ".join(topics) or "None yet"


def _previous_performance(previous: list[ResponseRecord]) -> str:
    lines = []
    for idx, record in enumerate(previous[-3:], start=1):
        feedback = ""
        if record.scores:
            feedback = record.scores.correctness.feedback[:100]
        lines.append(f"Q{idx}: Score {record.overall}% - {feedback or 'No feedback'}")
    return "\n".join(lines)


def build_question_prompt(context: InterviewContext, previous: list[ResponseRecord]) -> str:
    answered = [record for record in previous if record.is_answered]
    if answered:
        history_block = f"Previous Performance:\n{_previous_performance(answered)}"
    else:
        history_block = "This is the first question. Start with an appropriate opening question."

    return f"""Generate the next interview question.

Current State:
- Questions asked: {len(answered)}
- Current difficulty: {context.difficulty}
- Topics covered: {_topics_covered(answered)}

{history_block}

Generate a {context.difficulty} difficulty question for a {context.interview_type} interview.
Focus on topics not yet covered.
Respond in JSON format."""


def _voice_block(voice: VoiceAnalysis | None) -> str:
    if voice is None:
        return ""
    fillers = ", ".join(f"{item.word}({item.count})" for item in voice.filler_words) or "None"
    return f"""
VOICE ANALYSIS:
- Confidence Score: {voice.confidence}%
- Hesitation Count: {voice.hesitation_count}
- Filler Words: {fillers}
- Clarity Score: {voice.clarity_score}%
- Words per Minute: {voice.words_per_minute}
"""


def build_evaluation_prompt(question: Question, answer_text: str, voice: VoiceAnalysis | None = None) -> str:
    topics = ", ".join(question.expected_topics) or "General understanding"
    return f"""Evaluate this interview response:

QUESTION: {question.text}
DIFFICULTY: {question.difficulty or 'medium'}
EXPECTED TOPICS: {topics}

CANDIDATE'S ANSWER: {answer_text}
{_voice_block(voice)}
Reply with a JSON evaluation:
{{
  "scores": {{
    "correctness": {{ "score": 0-100, "feedback": "explanation" }},
    "reasoning": {{ "score": 0-100, "feedback": "explanation" }},
    "communication": {{ "score": 0-100, "feedback": "explanation" }},
    "structure": {{ "score": 0-100, "feedback": "explanation" }},
    "confidence": {{ "score": 0-100, "feedback": "explanation" }}
  }},
  "overall": 0-100,
  "strengths": ["strength1"],
  "weaknesses": ["weakness1"],
  "suggestions": ["suggestion1"],
  "keyTopicsCovered": ["topic1"],
  "keyTopicsMissed": ["topic2"],
  "shouldGenerateFollowUp": true|false,
  "followUpQuestion": "optional follow-up question",
  "adjustDifficulty": "increase|decrease|maintain"
}}"""


def build_follow_up_prompt(question_text: str, answer_text: str, overall: int, topics_missed: list[str]) -> str:
    missed = ", ".join(topics_missed) or "None"
    return f"""Based on the candidate's answer, generate a relevant follow-up question.

PREVIOUS QUESTION: {question_text}
ANSWER: {answer_text}
EVALUATION SUMMARY: Overall score {overall}%
TOPICS MISSED: {missed}

The follow-up should:
1. Probe deeper when the answer was good.
2. Clarify misunderstandings when there were gaps.
3. Explore closely related concepts at the same difficulty.

Respond in JSON format with a "question" field."""


def build_summary_prompt(summary_input: dict) -> str:
    scores = dict(summary_input.get("overall_scores") or {})
    progression = summary_input.get("difficulty_progression") or []
    responses = summary_input.get("responses") or []

    progression_lines = "\n".join(
        f"Q{int(item.get('question_index', 0)) + 1}: {item.get('difficulty')} ({item.get('score', 0)}%)"
        for item in progression
    ) or "Not available"
    response_lines = "\n".join(
        f"Q{idx}: {str(item.get('question') or '')[:100]}... | Score: {item.get('score', 0)}% | "
        f"Strengths: {', '.join(item.get('strengths') or []) or 'N/A'}"
        for idx, item in enumerate(responses, start=1)
    ) or "No responses available"

    return f"""Generate an interview summary and improvement plan.

INTERVIEW DATA:
- Type: {summary_input.get('interview_type')}
- Total Questions: {summary_input.get('total_questions')}
- Duration: {summary_input.get('duration_min')} minutes
- Overall Score: {scores.get('overall', 0)}%

SCORE BREAKDOWN:
- Correctness: {scores.get('correctness', 0)}%
- Reasoning: {scores.get('reasoning', 0)}%
- Communication: {scores.get('communication', 0)}%
- Structure: {scores.get('structure', 0)}%
- Confidence: {scores.get('confidence', 0)}%

DIFFICULTY PROGRESSION:
{progression_lines}

RESPONSES SUMMARY:
{response_lines}

Reply with JSON:
{{
  "overallAssessment": "2-3 sentence summary",
  "performanceLevel": "excellent|good|average|needs-improvement",
  "strengthAreas": ["area1"],
  "weaknessAreas": ["area1"],
  "detailedFeedback": {{
    "technicalSkills": "feedback",
    "problemSolving": "feedback",
    "communication": "feedback",
    "confidence": "feedback"
  }},
  "improvementPlan": {{
    "summary": "personalised improvement summary",
    "focusAreas": ["area1"],
    "shortTermGoals": ["goal1"],
    "longTermGoals": ["goal1"],
    "recommendedPractice": [
      {{ "topic": "topic", "priority": "high|medium|low", "suggestedQuestions": ["q1"], "estimatedTime": "X hours" }}
    ],
    "resources": [
      {{ "title": "name", "type": "book|video|course|article", "description": "why it helps" }}
    ]
  }},
  "readinessScore": 0-100,
  "recommendedNextSteps": ["step1"]
}}"""
