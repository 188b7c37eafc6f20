import json
import argparse
from dotenv import load_dotenv

from questions.errors import QuestionsError
from questions.utils.data_models import ExecutionConversation
from questions.utils.logging_config import setup_logging
from questions.utils.session_storage import save_session, load_session
from workflow.core.session_logic import new_session, latest_confidence
from workflow.graph import run_turn
from workflow.nodes.execution import execute_goal, append_exchange
from workflow.nodes.summary import analyze_session, summarize_session_text

load_dotenv()
logger = setup_logging()

STOP_WORDS = ("stop", "quit", "exit")


def _save(session: dict) -> None:
    try:
        result = save_session(session)
        logger.info(f"Session {result['sessionId']} saved ({result['storage']})")
    except QuestionsError as e:
        logger.error(f"Could not save session: {e.message}")


def run_session(session: dict) -> dict:
    """
    Ask questions in the terminal until the session completes.

    Returns:
        The completed session
    """
    result = run_turn(session)
    while True:
        if result["status"] == "error":
            print(f"\nError: {result['error']}")
            return result.get("session") or session

        session = result["session"]
        _save(session)

        if result["status"] == "completed":
            return session

        question = result["question"]
        print(f"\nQ{len(session['turns'])}: {question['question']}")
        print(f"   (why: {question['rationale']}, confidence {latest_confidence(session):.2f})")
        answer = input("> ").strip()
        while not answer:
            answer = input("> ").strip()

        if answer.lower() in STOP_WORDS:
            result = run_turn(session, stop=True)
        else:
            result = run_turn(session, answer=answer)


def run_execution_chat(session: dict) -> ExecutionConversation:
    """Work on the discovered goal in a short chat; an empty line or 'exit' ends it"""
    conversation = ExecutionConversation(
        sessionId=session["id"],
        goal=session.get("goal", ""),
        context=session.get("finalSummary")
    )
    while True:
        user_message = input("\nyou> ").strip()
        if not user_message or user_message.lower() in STOP_WORDS:
            return conversation
        try:
            history = [message.model_dump() for message in conversation.messages]
            reply = execute_goal(conversation.goal, conversation.context, history, user_message)
        except QuestionsError as e:
            print(f"Error: {e.message}")
            continue
        print(f"\nassistant> {reply}")
        conversation = append_exchange(conversation, user_message, reply)


def main():
    parser = argparse.ArgumentParser(description="Run a 20 Questions session in the terminal")
    parser.add_argument("--resume", help="Session id to resume")
    parser.add_argument("--chat", action="store_true", help="Chat about the goal once the session completes")
    parser.add_argument("--analyze", action="store_true", help="Print a recap and recommendations for the completed session")
    args = parser.parse_args()

    session = load_session(args.resume) if args.resume else new_session()
    print("20 Questions: answer each question, or type 'stop' to finish early.")

    if session.get("status") != "completed":
        session = run_session(session)

    if session.get("status") == "completed":
        print("\nGoal:", session.get("goal"))
        print("Summary:", session.get("finalSummary"))
        if args.analyze:
            print("\nRecap:", summarize_session_text(session)["summary"])
            analysis = analyze_session(session)
            for recommendation in analysis["recommendations"]:
                print(f"- {recommendation}")
        if args.chat:
            conversation = run_execution_chat(session)
            logger.info(f"Chat ended after {len(conversation.messages)} messages")
    else:
        print(json.dumps(session, indent=2))


if __name__ == "__main__":
    main()
