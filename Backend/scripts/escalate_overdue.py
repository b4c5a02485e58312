import logging

from database import engine, Base
from config import LOG_LEVEL
from services.escalation_service import run_escalation_sweep


def escalate():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    Base.metadata.create_all(bind=engine)

    result = run_escalation_sweep()
    if result.skipped:
        print("Another escalation sweep is running, nothing done.")
        return result

    print(f"Overdue complaints found: {result.found}")
    print(f"Escalated: {result.escalated}")
    print(f"Failed: {result.failed}")
    return result


if __name__ == "__main__":
    escalate()
