"""
Reconciliation of Jenkins job configuration (config.xml).

New build parameters have to reach every Jenkins job the hook triggers
without someone editing each job by hand. Before a build, the job's config is
checked for the managed DEPLOY_* string parameters and for a managed block in
the job description listing every project/stage that triggers the job. The
block is delimited by DESC_HEADER/DESC_FOOTER and is rebuilt, never edited in
place.

Documents are treated as immutable: apply() returns a new JobConfig and leaves
its input untouched.
"""

import copy
import re
import xml.etree.ElementTree as ET
from collections.abc import Iterable
from dataclasses import dataclass

from hook_common.models import ConfigChanges

BUILD_PARAMETERS_PREFIX = "DEPLOY_"
BUILD_PARAMETERS_DEFAULT_VALUE = ""
DESC_HEADER = "#### DEPLOY HOOK DESCRIPTION STARTS ####"
DESC_FOOTER = "#### DEPLOY HOOK DESCRIPTION ENDS ####"
JOB_NAME_PREFIX = "*"
JOB_DESC = (
    "Following text is generated by the deploy hook. Please do not edit manually.\n"
    "This job is triggered from following projects and stages:\n"
    "{job_names}\n"
    f"Build Parameters starting with {BUILD_PARAMETERS_PREFIX} are updated "
    "automatically by the deploy hook. Please disable automatic updating "
    "of this jenkins job from the above mentioned projects "
    "before manually editing build parameters or description."
)

# Managed parameters, in the order they are added to a job.
BUILD_PARAMETERS = {
    "buildStartedBy": "Username of the person who started the deployment.",
    "originatedFrom": "Project + stage + commit reference of the deployment.",
    "commit": "Git commit hash of the change deployed.",
    "tag": "Git tags of the commit being deployed.",
    "deployUrl": "URL of the deploy which triggered the current job.",
    "emails": "Emails of the committers, buddy and user for current deployment. "
    "Disable committer emails on the stage to exclude the committers.",
}

STRING_PARAMETER_TAG = "hudson.model.StringParameterDefinition"
PARAMETERS_PROPERTY_TAG = "hudson.model.ParametersDefinitionProperty"

_DECLARATION = re.compile(r"^\s*(<\?xml[^>]*\?>)\s*")


class JobConfigError(ValueError):
    """config.xml could not be parsed."""


@dataclass(frozen=True)
class JobConfig:
    """
    A parsed config.xml.

    ElementTree drops the XML declaration, so it is kept aside and written
    back by to_xml() (Jenkins emits version 1.1 declarations).
    """

    root: ET.Element
    declaration: str = ""

    def to_xml(self) -> str:
        body = ET.tostring(self.root, encoding="unicode")
        if self.declaration:
            return f"{self.declaration}\n{body}"
        return body


def parse_config(text: str) -> JobConfig:
    """
    Parse config.xml text.

    Raises:
        JobConfigError: If the document is not well-formed XML
    """
    declaration = ""
    match = _DECLARATION.match(text)
    if match:
        declaration = match.group(1)
        text = text[match.end():]
    try:
        # Keep comments and processing instructions so they survive a rewrite
        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True, insert_pis=True))
        root = ET.fromstring(text, parser=parser)
    except ET.ParseError as e:
        raise JobConfigError(f"Invalid job config: {e}") from e
    return JobConfig(root=root, declaration=declaration)


def squish(line: str) -> str:
    """Collapse whitespace runs to single spaces and strip the ends."""
    return " ".join(line.split())


def job_line(project_name: str, stage_name: str) -> str:
    """Line identifying a project/stage inside the managed description block."""
    return squish(f"{JOB_NAME_PREFIX} {project_name} - {stage_name}")


class ConfigReconciler:
    """
    Checks and updates a job config for one project/stage.

    Args:
        project_name: Project of the deploy
        stage_name: Stage of the deploy
        required: Managed parameter names that must be present
    """

    def __init__(
        self,
        project_name: str,
        stage_name: str,
        required: Iterable[str] = tuple(BUILD_PARAMETERS),
    ):
        self.job_line = job_line(project_name, stage_name)
        self.required = tuple(required)

    def check_config(self, config: JobConfig) -> ConfigChanges:
        """Report the managed parameters and description the config lacks."""
        present = set(self.build_params(config.root))
        missing = tuple(name for name in self.required if name not in present)
        return ConfigChanges(
            missing_params=missing,
            description_stale=not self.description_exists(config.root),
        )

    def apply(self, config: JobConfig, changes: ConfigChanges) -> JobConfig:
        """Return a copy of config with the reported changes made."""
        root = copy.deepcopy(config.root)
        if changes.missing_params:
            self.add_build_parameters(root, changes.missing_params)
        if changes.description_stale and not self.description_exists(root):
            self.add_job_description(root)
        return JobConfig(root=root, declaration=config.declaration)

    @staticmethod
    def build_params(root: ET.Element) -> list[str]:
        """Names of managed string parameters, with the prefix stripped."""
        names = []
        for param in root.iter(STRING_PARAMETER_TAG):
            name = (param.findtext("name") or "").strip()
            if name.startswith(BUILD_PARAMETERS_PREFIX):
                names.append(name[len(BUILD_PARAMETERS_PREFIX):])
        return names

    def description_exists(self, root: ET.Element) -> bool:
        """
        True when the description holds header, this job's line and footer,
        in that order.
        """
        desc = root.find("description")
        if desc is None:
            return False
        lines = [squish(line) for line in (desc.text or "").splitlines()]
        try:
            head = lines.index(DESC_HEADER)
            foot = lines.index(DESC_FOOTER)
        except ValueError:
            return False
        return self.job_line in lines[head + 1:foot]

    @staticmethod
    def extract_description(text: str) -> tuple[list[str], list[str]]:
        """
        Split a description into free text and listed job lines.

        Returns:
            (lines outside the managed block, job lines inside it)
        """
        lines = text.splitlines()
        squished = [squish(line) for line in lines]
        job_names: list[str] = []

        if DESC_HEADER in squished and DESC_FOOTER in squished:
            start = squished.index(DESC_HEADER)
            end = squished.index(DESC_FOOTER)
            if start < end:
                job_names = [
                    line for line in squished[start:end + 1]
                    if line.startswith(JOB_NAME_PREFIX)
                ]
                lines = lines[:start] + lines[end + 1:]

        # Stray or out-of-order markers would confuse the next check.
        prev_content = [
            line for line in lines if squish(line) not in (DESC_HEADER, DESC_FOOTER)
        ]
        return prev_content, job_names

    def add_job_description(self, root: ET.Element) -> None:
        desc = root.find("description")
        if desc is None:
            desc = ET.Element("description")
            actions = root.find("actions")
            index = list(root).index(actions) + 1 if actions is not None else 0
            root.insert(index, desc)

        prev_content, job_names = self.extract_description(desc.text or "")
        if self.job_line not in job_names:
            job_names.append(self.job_line)

        desc.text = "\n".join(
            [
                *prev_content,
                DESC_HEADER,
                JOB_DESC.format(job_names="\n".join(job_names)),
                DESC_FOOTER,
            ]
        )

    @staticmethod
    def parameter_definitions(root: ET.Element) -> ET.Element:
        """Find the parameterDefinitions container, creating it when absent."""
        container = next(root.iter("parameterDefinitions"), None)
        if container is not None:
            return container

        properties = root.find("properties")
        if properties is None:
            properties = ET.SubElement(root, "properties")
        prop = ET.SubElement(properties, PARAMETERS_PROPERTY_TAG)
        return ET.SubElement(prop, "parameterDefinitions")

    def add_build_parameters(self, root: ET.Element, missing: Iterable[str]) -> None:
        container = self.parameter_definitions(root)
        for name in missing:
            param = ET.SubElement(container, STRING_PARAMETER_TAG)
            ET.SubElement(param, "name").text = BUILD_PARAMETERS_PREFIX + name
            ET.SubElement(param, "description").text = BUILD_PARAMETERS[name]
            ET.SubElement(param, "defaultValue").text = BUILD_PARAMETERS_DEFAULT_VALUE
