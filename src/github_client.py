#!/usr/bin/env python3
"""
GitHub client utilities
"""

import json
import os

from typing import List, Optional
from github import Github
from github.PullRequest import PullRequest
import requests
from models import JobInfo, StepInfo
from constants import FAILED_CONCLUSIONS, LOG_ANALYZER_COMMENT_MARKER


class GitHubClient:
    def __init__(self, github_token: str, repository: str, run_id: str):
        self.github_token = github_token
        self.repository = repository
        self.run_id = run_id
        self.github = Github(self.github_token)
        self.sha = os.getenv("GITHUB_SHA")
        self.api_url = os.getenv("GITHUB_API_URL", "https://api.github.com")

    def _headers(self) -> dict:
        return {
            "Authorization": f"token {self.github_token}",
            "Accept": "application/vnd.github.v3+json"
        }

    def get_run_jobs(self) -> List[JobInfo]:
        """Get every job of the current workflow run with its step metadata"""
        jobs_url = f"{self.api_url}/repos/{self.repository}/actions/runs/{self.run_id}/jobs"
        try:
            response = requests.get(jobs_url, headers=self._headers(), params={"per_page": 100}, timeout=30)
        except requests.RequestException as e:
            print(f"❌ Error getting jobs: {e}")
            return []

        if response.status_code != 200:
            print(f"❌ Error getting jobs: {response.status_code}")
            return []

        jobs = []
        for job in response.json().get('jobs', []):
            steps = [
                StepInfo(
                    name=step.get('name', 'Unknown Step'),
                    conclusion=step.get('conclusion'),
                    started_at=step.get('started_at'),
                    completed_at=step.get('completed_at'),
                    number=step.get('number', 0),
                )
                for step in job.get('steps') or []
            ]
            jobs.append(JobInfo(
                id=job['id'],
                name=job.get('name', 'Unknown Job'),
                conclusion=job.get('conclusion'),
                created_at=job.get('created_at'),
                started_at=job.get('started_at'),
                completed_at=job.get('completed_at'),
                html_url=job.get('html_url', ''),
                steps=steps,
            ))
        return jobs

    def get_failed_jobs(self, job_name: Optional[str] = None, jobs: Optional[List[JobInfo]] = None) -> List[JobInfo]:
        """Get failed jobs, optionally only the one with the given name"""
        if jobs is None:
            jobs = self.get_run_jobs()
        failed = [job for job in jobs if job.conclusion in FAILED_CONCLUSIONS]
        if job_name:
            failed = [job for job in failed if job.name == job_name]
        return failed

    def get_job_logs(self, job_id: int) -> Optional[str]:
        """Get the full log text for a job, or None if it can't be downloaded"""
        url = f"{self.api_url}/repos/{self.repository}/actions/jobs/{job_id}/logs"
        try:
            response = requests.get(url, headers=self._headers(), timeout=60)
        except requests.RequestException as e:
            print(f"⚠️  Error retrieving logs for job {job_id}: {e}")
            return None

        if response.status_code == 200:
            return response.text

        print(f"⚠️  Could not retrieve logs for job {job_id} (status: {response.status_code})")
        return None

    def list_artifacts(self) -> List[dict]:
        """Get non-expired artifacts uploaded by this run"""
        url = f"{self.api_url}/repos/{self.repository}/actions/runs/{self.run_id}/artifacts"
        try:
            response = requests.get(url, headers=self._headers(), timeout=30)
        except requests.RequestException as e:
            print(f"⚠️  Could not fetch artifacts: {e}")
            return []

        if response.status_code != 200:
            print(f"⚠️  Could not fetch artifacts (status: {response.status_code})")
            return []

        return [
            {"name": a.get('name'), "size_in_bytes": a.get('size_in_bytes', 0), "url": a.get('url')}
            for a in response.json().get('artifacts', [])
            if not a.get('expired')
        ]

    def _event_pull_number(self) -> Optional[int]:
        """PR number carried by the triggering event's payload, if any"""
        event_path = os.getenv("GITHUB_EVENT_PATH")
        if not event_path or not os.path.exists(event_path):
            return None
        with open(event_path, "r", encoding="utf-8") as f:
            payload = json.load(f)

        if "pull_request" in payload:
            return payload["pull_request"].get("number")
        # workflow_run events list the PRs of the triggering run
        linked = payload.get("workflow_run", {}).get("pull_requests") or []
        return linked[0].get("number") if linked else None

    def get_pull_request(self) -> Optional[PullRequest]:
        """Find the pull request to comment on, from the event or else from the run's commit"""
        try:
            repo = self.github.get_repo(self.repository)
            number = self._event_pull_number()
            if number:
                return repo.get_pull(number)
            if not self.sha:
                return None
            return next((pr for pr in repo.get_commit(self.sha).get_pulls() if pr.state == "open"), None)
        except Exception as e:
            print(f"❌ Error getting pull request: {e}")
            return None

    def post_or_update_comment(self, pr: PullRequest, body: str, match_text: str = "") -> None:
        """Post a report comment, replacing our earlier comment that mentions match_text"""
        comment_body = f"{LOG_ANALYZER_COMMENT_MARKER}\n{body}"

        try:
            for comment in pr.get_issue_comments():
                if LOG_ANALYZER_COMMENT_MARKER in comment.body and match_text in comment.body:
                    comment.edit(comment_body)
                    print(f"✅ Updated existing comment on PR #{pr.number}")
                    return

            pr.create_issue_comment(comment_body)
            print(f"✅ Created new comment on PR #{pr.number}")

        except Exception as e:
            print(f"❌ Error posting comment: {e}")
