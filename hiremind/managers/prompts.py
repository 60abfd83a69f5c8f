from typing import Any, Dict, List, Optional

from ..application.interview_session import (
    CandidateProfile,
    CustomScenario,
    Difficulty,
    InterviewSession,
    QuestionTurn,
)

COURSE_TOPICS: Dict[str, Dict[str, str]] = {
    "frontend": {
        "react": "React.js framework - components, hooks, state management, context API, performance optimization, virtual DOM, JSX, lifecycle methods",
        "vue": "Vue.js framework - components, directives, Vuex, composition API, reactivity system, Vue Router",
        "angular": "Angular framework - components, services, dependency injection, RxJS, TypeScript, modules, directives",
        "javascript": "Core JavaScript - ES6+, closures, promises, async/await, prototypes, event loop, DOM manipulation",
        "html": "HTML5 - semantic elements, forms, accessibility, SEO best practices",
        "css": "CSS3 - flexbox, grid, animations, responsive design, preprocessors, CSS-in-JS",
    },
    "backend": {
        "node": "Node.js - Express, middleware, RESTful APIs, authentication, database integration, async patterns",
        "python": "Python backend - Django/Flask, APIs, database ORMs, authentication, deployment",
        "java": "Java backend - Spring Boot, REST APIs, JPA/Hibernate, microservices, security",
        "php": "PHP backend - Laravel/Symfony, MVC, databases, authentication, web services",
        "ruby": "Ruby on Rails - MVC, ActiveRecord, routing, authentication, testing",
        "go": "Go backend - Goroutines, HTTP servers, concurrency, database access, microservices",
    },
    "database": {
        "sql": "SQL databases - PostgreSQL/MySQL, queries, joins, indexes, normalization, transactions",
        "mongodb": "MongoDB - NoSQL, documents, collections, aggregation, indexes, replication",
        "redis": "Redis - caching, data structures, pub/sub, performance optimization",
    },
    "devops": {
        "docker": "Docker - containers, images, Docker Compose, networking, volumes",
        "kubernetes": "Kubernetes - pods, services, deployments, scaling, orchestration",
        "aws": "AWS - EC2, S3, Lambda, RDS, CloudFormation, architecture design",
        "cicd": "CI/CD - pipelines, automated testing, deployment strategies, GitOps",
    },
    "mobile": {
        "react": "React Native - mobile components, navigation, state management, native modules",
        "flutter": "Flutter - widgets, state management, Dart, animations, platform integration",
        "ios": "iOS development - Swift, UIKit, SwiftUI, Core Data, networking",
        "android": "Android development - Kotlin, Activities, Fragments, Room, MVVM",
    },
}

INTERVIEW_STYLES = {
    "technical": (
        "You are conducting a natural, conversational technical interview. This is a REAL interview, so:\n\n"
        "QUESTION TYPE MIX:\n"
        "- TECHNICAL/CONCEPTUAL (40%): Core knowledge, algorithms, system design, best practices\n"
        "- PROBLEM-SOLVING (25%): Approach to problems, debugging, real-world scenarios\n"
        "- BEHAVIORAL (20%): Past experiences, teamwork, handling challenges\n"
        "- COMMUNICATION (15%): Explaining concepts, teaching, documentation\n\n"
        "INTERVIEW STYLE:\n"
        "- Ask questions like a real interviewer would\n"
        "- Build on previous answers naturally\n"
        "- Mix technical depth with behavioral insights\n"
        "- Be conversational, not robotic"
    ),
    "hr": (
        "You are conducting a natural, conversational HR interview. This is a REAL interview, so:\n\n"
        "QUESTION TYPE MIX:\n"
        "- BEHAVIORAL (40%): Past experiences, conflict resolution, teamwork, leadership (use STAR method)\n"
        "- MOTIVATIONAL (25%): Career goals, what drives them, why this role\n"
        "- SITUATIONAL (20%): How they'd handle workplace scenarios\n"
        "- CULTURAL FIT (15%): Work style, values, communication preferences\n\n"
        "INTERVIEW STYLE:\n"
        "- Create a warm, engaging conversation\n"
        "- Ask follow-up questions based on their answers\n"
        "- Be empathetic and professional"
    ),
    "custom": (
        "You are conducting a comprehensive interview. This is a REAL interview, so:\n\n"
        "QUESTION TYPE MIX:\n"
        "- EXPERIENCE-BASED (35%): Past projects, achievements, challenges\n"
        "- SKILLS ASSESSMENT (30%): Technical abilities, soft skills, problem-solving\n"
        "- BEHAVIORAL (20%): Teamwork, handling pressure, learning and growth\n"
        "- FORWARD-LOOKING (15%): Goals, aspirations, what they're seeking\n\n"
        "INTERVIEW STYLE:\n"
        "- Keep it conversational and natural\n"
        "- Build on previous responses\n"
        "- Mix different question types"
    ),
}

DIFFICULTY_LEVELS = {
    Difficulty.BEGINNER: (
        "DIFFICULTY LEVEL: BEGINNER - Ask fundamental questions about basic concepts, definitions, "
        "and simple applications. Avoid complex scenarios or advanced topics. Keep questions "
        "encouraging and supportive."
    ),
    Difficulty.INTERMEDIATE: (
        "DIFFICULTY LEVEL: INTERMEDIATE - Ask practical questions about real-world applications, "
        "problem-solving, and best practices. Include scenario-based questions that require applying "
        "knowledge to common challenges."
    ),
    Difficulty.PRO: (
        "DIFFICULTY LEVEL: PRO - Ask advanced questions about optimization, performance, scalability, "
        "and complex problem-solving. Include questions about trade-offs and design patterns."
    ),
    Difficulty.ADVANCED: (
        "DIFFICULTY LEVEL: ADVANCED - Ask expert-level questions about system architecture, complex "
        "design decisions and deep technical knowledge. Challenge the candidate with sophisticated "
        "scenarios requiring strategic thinking."
    ),
}

OPENING_PROMPT = (
    "You are an experienced {kind}interviewer conducting a professional interview.\n\n"
    "START THE INTERVIEW NATURALLY:\n"
    "1. Briefly introduce yourself\n"
    "2. Then ask the candidate to introduce themselves\n\n"
    "Keep it warm, professional, and conversational. This is the opening of a real interview.\n\n"
    "This is question number 1.\n\n"
    "Return ONLY the opening, nothing else."
)

QUESTION_GUIDELINES = """IMPORTANT GUIDELINES:
1. Generate a UNIQUE question that hasn't been asked in this interview
2. Vary the question type - mix technical, behavioral, problem-solving, and situational questions
3. Make it conversational and natural, like a real interviewer would ask
4. If this is a follow-up, reference their previous response naturally
5. Keep questions clear, specific, and appropriate for their background
6. For students: focus on learning, projects, and potential - NOT work experience

Generate ONE engaging interview question that fits these criteria. Return ONLY the question, nothing else."""

TURN_DETECTION_PROMPT = """You are an expert at detecting when someone has finished speaking in a conversation.

Context: This is an interview. The user is answering a question: "{question}"

Current transcript of what the user has said so far:
"{transcript}"

Analyze this transcript and determine:
1. Has the user completed their thought/answer?
2. Are they still in the middle of formulating their response?
3. Are filler words like "um", "uh", "and", "because", "so" at the end indicating they want to continue?

Respond in JSON format:
{{
  "is_complete": boolean (true if user is done, false if still speaking),
  "confidence": number (0.0 to 1.0 confidence score),
  "reasoning": "brief explanation of your decision"
}}

Consider:
- Complete sentences with proper endings indicate completion
- Trailing filler words ("um", "uh", "and", "because") indicate continuation
- Incomplete thoughts or hanging sentences indicate continuation
- Well-formed, conclusive statements indicate completion"""

ANALYSIS_PROMPT = """You are an expert interview evaluator with 10+ years of experience. Analyze this {kind} interview transcript and provide a comprehensive, actionable performance assessment.

Interview Transcript:
{transcript}

Scoring (0-100 scale):
- Use granular scoring - differentiate clearly between good and excellent performance
- Base scores on depth of knowledge, clarity of communication, and problem-solving approach
- Be realistic but encouraging

Strengths: identify 4-5 specific strengths, referencing actual responses where possible.
Improvements: provide 4-5 specific, actionable improvement areas, prioritized by impact.
Detailed feedback: 3-4 paragraphs (200-300 words) with specific examples, a comparison to industry standards for {kind} interviews and a clear learning path forward.

Return ONLY this JSON (no markdown formatting):
{{
  "overall_score": <number 0-100>,
  "communication_score": <number 0-100>,
  "technical_score": <number 0-100>,
  "problem_solving_score": <number 0-100>,
  "confidence_score": <number 0-100>,
  "strengths": ["..."],
  "improvements": ["..."],
  "detailed_feedback": "..."
}}"""

MODEL_ANSWER_PROMPT = """You are an expert in providing model answers for interview questions. For each question below, provide a concise, professional probable answer that demonstrates strong knowledge and communication skills.

Questions:
{questions}

Provide your response as a JSON array with this format:
[
  {{"question_number": 1, "probable_answer": "..."}}
]"""

RESUME_PROMPT = """You are a resume parser. Extract structured information from the following resume text and return it as JSON.

Extract:
- skills: array of technical skills
- experience: array of work experiences with {{"company", "role", "duration", "description"}}, most recent first
- education: array of education with {{"institution", "degree", "field", "year"}}
- projects: array of projects with {{"name", "description", "technologies"}}
- years_of_experience: total years of professional experience as a number, 0 if none
- summary: brief professional summary (2-3 sentences)

Resume text:
{text}

Return ONLY valid JSON, no markdown formatting."""


def split_course(interview_type: str) -> Optional[tuple]:
    """'frontend-react' -> ('frontend', 'react'); plain types have no course."""
    if "-" not in interview_type:
        return None
    stream, _, subject = interview_type.partition("-")
    return stream, subject


def course_context(interview_type: str) -> str:
    course = split_course(interview_type)
    if course is None:
        return ""
    stream, subject = course
    topics = COURSE_TOPICS.get(stream, {}).get(subject, f"{stream} {subject} development")
    return (
        f"COURSE FOCUS: {stream.upper()} - {subject.upper()}\n"
        f"This is a specialized {stream} interview focusing on {subject}.\n\n"
        f"TECHNICAL TOPICS TO COVER:\n{topics}\n\n"
        f"Keep every question directly related to {subject} {stream} development: practical "
        f"scenarios, best practices, common challenges and {subject}-specific tools. "
        "Do not ask generic programming questions."
    )


def scenario_context(scenario: CustomScenario) -> str:
    lines = [
        "You are conducting a highly personalized custom interview scenario.",
        "",
        f"SCENARIO DESCRIPTION: {scenario.description}",
        "",
        f"INTERVIEW CONTEXT: {scenario.context or 'Standard interview setting'}",
    ]
    if scenario.goals:
        lines += ["", "CANDIDATE'S GOALS TO DEMONSTRATE:"]
        lines += [f"{i}. {goal}" for i, goal in enumerate(scenario.goals, 1)]
    if scenario.focus_areas:
        lines += ["", "FOCUS AREAS TO ASSESS:"]
        lines += [f"{i}. {area}" for i, area in enumerate(scenario.focus_areas, 1)]
    lines += [
        "",
        "Ask questions that directly evaluate the focus areas, build naturally on previous "
        "responses and stay aligned with the scenario throughout.",
    ]
    return "\n".join(lines)


def profile_context(profile: Optional[CandidateProfile]) -> str:
    if profile is None:
        return ""
    parts = []
    stage = profile.career_stage
    if stage == "student":
        parts.append(
            "IMPORTANT: The candidate is a STUDENT with NO professional work experience yet. "
            "Focus on academic projects, coursework, teamwork in group projects and their potential. "
            "NEVER ask about previous jobs or workplace scenarios."
        )
    elif stage == "recent_graduate":
        parts.append(
            "IMPORTANT: The candidate is a RECENT GRADUATE with limited professional experience. "
            "Ask about academic projects, internships and the transition to professional life."
        )
    elif stage == "professional":
        role = profile.current_role or "professional"
        years = profile.years_of_experience or 0
        parts.append(
            f"The candidate is a {role} with {years} years of professional experience. Ask questions "
            "appropriate for their experience level, including past projects and leadership."
        )
    elif stage == "career_changer":
        parts.append(
            "The candidate is transitioning to a new field. Explore their transferable skills, "
            "their motivation for the change and how they are preparing for it."
        )
    if profile.target_role:
        parts.append(f"They are targeting a {profile.target_role} position.")
    if profile.skills:
        parts.append(f"Candidate's skills: {', '.join(profile.skills)}")
    return "\n\n".join(parts)


def history_context(history: List[Dict[str, Any]]) -> str:
    if not history:
        return ""
    pairs = "\n".join(
        f"\nQ{i}: {qa['question']}\nA{i}: {qa['answer']}" for i, qa in enumerate(history, 1)
    )
    return (
        f"PREVIOUS CONVERSATION:\n{pairs}\n\n"
        "Your next question MUST either follow up on what they said or explore a different "
        "aspect of the role. NEVER ask the same type of question twice."
    )


def question_prompt(session: InterviewSession, index: int, history: List[Dict[str, Any]]) -> str:
    if index == 1:
        kind = {"technical": "technical ", "hr": "HR "}.get(session.interview_type, "")
        return OPENING_PROMPT.format(kind=kind)

    if session.interview_type == "custom" and session.custom_scenario is not None:
        sections = [scenario_context(session.custom_scenario)]
    else:
        style = INTERVIEW_STYLES.get(session.interview_type, INTERVIEW_STYLES["custom"])
        sections = [style, course_context(session.interview_type)]

    sections += [
        DIFFICULTY_LEVELS.get(session.difficulty, DIFFICULTY_LEVELS[Difficulty.INTERMEDIATE]),
        profile_context(session.candidate_profile),
        f"This is question number {index}.",
        history_context(history),
        QUESTION_GUIDELINES,
    ]
    return "\n\n".join(section for section in sections if section)


def turn_detection_prompt(transcript: str, question: str) -> str:
    return TURN_DETECTION_PROMPT.format(question=question or "a question", transcript=transcript)


def analysis_prompt(session: InterviewSession, turns: List[QuestionTurn]) -> str:
    transcript = "\n\n".join(f"Q{t.index}: {t.question}\nA{t.index}: {t.answer}" for t in turns)
    return ANALYSIS_PROMPT.format(kind=session.interview_type, transcript=transcript)


def model_answer_prompt(turns: List[QuestionTurn]) -> str:
    questions = "\n\n".join(f"Q{t.index}: {t.question}" for t in turns if t.question)
    return MODEL_ANSWER_PROMPT.format(questions=questions)


def resume_prompt(text: str) -> str:
    return RESUME_PROMPT.format(text=text)
