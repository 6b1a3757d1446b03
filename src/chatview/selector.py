"""Interactive talker picker using InquirerPy."""


def select_talker(talkers: list[str]) -> str | None:
    """Display a fuzzy-search prompt and return the chosen talker, or None."""
    from InquirerPy import inquirer

    if not talkers:
        return None

    return inquirer.fuzzy(
        message="Search and select a conversation to export:",
        choices=talkers,
        instruction="(Type to filter | Enter: confirm)",
        mandatory=False,
    ).execute()
