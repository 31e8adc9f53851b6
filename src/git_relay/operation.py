"""The closed set of synchronisation operations and their presentation."""

from enum import Enum


class Operation(str, Enum):
    """A synchronisation operation run against a single remote."""

    PULL = "pull"
    PUSH = "push"
    FETCH = "fetch"

    @property
    def verb(self) -> str:
        """Present participle used in progress titles (e.g. 'Pulling')."""
        return _VERBS[self]

    @property
    def past_tense(self) -> str:
        """Past-tense label used in summaries (e.g. 'Pulled')."""
        return _PAST_TENSE[self]

    def build_args(
        self, remote_name: str, branch: str = "", force: bool = False
    ) -> list[str]:
        """Builds the git arguments for this operation.

        Args:
            remote_name (str): The remote to operate against.
            branch (str, optional): The branch to pull. Falls back to 'HEAD'
                                    when empty. Ignored for push and fetch.
            force (bool, optional): Whether to force the push. Ignored for
                                    pull and fetch. Defaults to False.

        Returns:
            list[str]: Arguments to pass to the git executable.
        """
        if self is Operation.PULL:
            return ["pull", remote_name, branch or "HEAD"]
        if self is Operation.PUSH:
            if force:
                return ["push", "--force", remote_name]
            return ["push", remote_name]
        return ["fetch", remote_name]

    def __str__(self) -> str:
        return self.value


_VERBS = {
    Operation.PULL: "Pulling",
    Operation.PUSH: "Pushing",
    Operation.FETCH: "Fetching",
}

_PAST_TENSE = {
    Operation.PULL: "Pulled",
    Operation.PUSH: "Pushed",
    Operation.FETCH: "Fetched",
}
