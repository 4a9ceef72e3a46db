import sys

from workflows import scrape_reviews


WORKFLOWS = {
    "scrape_reviews": scrape_reviews.main,
}


def main(workflow_name: str, argv: list) -> int:
    """Main entry point for running workflows by name."""
    workflow = WORKFLOWS.get(workflow_name)
    if workflow is None:
        print(f"Unknown workflow: {workflow_name}")
        return 1
    return workflow(argv)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python main.py <workflow_name> [args...]")
        sys.exit(1)

    workflow_name = sys.argv[1]
    sys.exit(main(workflow_name, sys.argv[2:]))
