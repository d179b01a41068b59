"""Process exit codes shared by every subcommand."""

OK = 0
# test finding under a strict policy (parallel build failed, output inconsistent, diff not empty)
FINDING = 1
USER_ERR = 2
# harness fault: backup, sequential build, restore or IO failed
FATAL = 3

__all__ = ["FATAL", "FINDING", "OK", "USER_ERR"]
