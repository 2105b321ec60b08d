"""Preview deployments of pull requests on Codesphere.

Reconciles one Codesphere workspace per pull request from GitHub Actions
events:
- Resolves a deterministic workspace name from repository and PR number
- Creates the workspace on first run, updates it on later runs
- Runs the build/test/run pipeline with bounded waits
- Deletes the workspace when the pull request closes
"""

__version__ = "1.0.0"
