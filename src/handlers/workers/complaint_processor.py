"""Complaint processing worker process.

Long-polls the complaints queue, persists each complaint and publishes a
ComplaintProcessed event. Run as a container task:

    python complaint_processor.py
"""

from complaints.workers.entrypoints import run_processor


def main() -> None:
    run_processor()


if __name__ == "__main__":
    main()
