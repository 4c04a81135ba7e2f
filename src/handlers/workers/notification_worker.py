"""Notification worker process.

Long-polls the notifications queue (subscribed to the complaints topic)
and notifies the customer for each processed complaint.
"""

from complaints.workers.entrypoints import run_notifier


def main() -> None:
    run_notifier()


if __name__ == "__main__":
    main()
