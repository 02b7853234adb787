"""
Centralized prompts for every AI gateway call.

Each call gets a narrow system instruction and a user prompt built from a
template. School-specific values are injected from configuration, not
hardcoded.
"""

from admission_bot.config import settings

_school = settings.school

SCHOOL_CONTEXT = (
    f"You are {_school.bot_name}, a WhatsApp assistant for {_school.name}."
)

INTENT_SYSTEM_PROMPT = "Interpret intent without hardcoded rules."

INTENT_PROMPT_TEMPLATE = (
    SCHOOL_CONTEXT
    + " Classify the message as either AdmissionFlow (if the sender wants to apply"
    " or is providing admission details like name, email, grade, semester) or"
    " AskFAQ (for general school queries)."
    ' Message: "{message}" Context: "{context}"'
    ' Respond with JSON: {{"intent": "AdmissionFlow"}} or {{"intent": "AskFAQ"}}'
    " with no extra text."
)

YES_NO_SYSTEM_PROMPT = "Interpret confirmations (yes/no)."

YES_NO_PROMPT_TEMPLATE = (
    'Interpret "{message}" as yes or no. Respond with only "yes", "no", or "unknown".'
)

VALIDATION_SYSTEM_PROMPT = (
    "You are a data validation and formatting assistant. For valid inputs, always"
    ' return "valid" followed by a space and then the database-ready value. Convert'
    " all inputs to their proper database format (numbers for grades and semesters,"
    " lowercase for emails, standardized names for referrals). Never include any"
    " other text."
)

VALIDATION_PROMPTS: dict[str, str] = {
    "name": (
        'Validate "{value}" as a full name for a school application. If valid, output'
        ' exactly "valid" followed by a space and then the name exactly as provided.'
        " If invalid, return an error message."
    ),
    "email": (
        'Validate "{value}" as an email address. If valid, output exactly "valid"'
        " followed by a space and then the email in lowercase. If invalid, return an"
        " error message."
    ),
    "grade_level": (
        'Validate "{value}" as a grade level (1-12). Accept variations like "Grade 3",'
        ' "3rd grade", "three", "3". If valid, output exactly "valid" followed by a'
        " space and then the grade as a number. If invalid, return an error message."
    ),
    "semester": (
        'Validate "{value}" as a semester (1 or 2). Accept variations like'
        ' "Semester 1", "1st semester", "one", "two". If valid, output exactly "valid"'
        " followed by a space and then the semester as a number. If invalid, return"
        " an error message."
    ),
    "referral_source": (
        'Validate "{value}" as a referral source. Accept variations of: Twitter,'
        " Facebook, Instagram, YouTube, Friend, or Other. If valid, output exactly"
        ' "valid" followed by a space and then the standardized source name (e.g.,'
        ' for "from a friend" output "valid Friend"). If invalid, return an error'
        " message."
    ),
}

GENERIC_VALIDATION_PROMPT = (
    'Validate "{value}" as {validation_type}. If valid, output exactly "valid".'
    " If invalid, return an error message."
)

FAQ_SYSTEM_PROMPT = "Answer FAQs with a friendly tone."

FAQ_PROMPT_TEMPLATE = (
    f"You are a cheerful and knowledgeable assistant at {_school.name}. Using the"
    " School Info below, answer the query in concise bullet points.\n"
    "School Info:\n{document}\n"
    'Query: "{question}"\n'
    "Provide clear, relevant details and links if applicable."
)
