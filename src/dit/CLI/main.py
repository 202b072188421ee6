# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Command Line Interface for DIT.
"""
import functools
import logging

import click

from .. import __version__
from ..MANAGERS.config_manager import ConfigManager
from ..REGISTRY.docker_client import DockerClient
from ..RUNNERS.image_runner import ImageRunner, update_base_images
from ..UTILS.logger import setup_logger
from ..exceptions import DitError

logger = logging.getLogger(__name__)


def handle_errors(func):
    """Report dit errors as a one-line message and a non-zero exit."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DitError as e:
            logger.debug("Command failed", exc_info=True)
            raise click.ClickException(str(e)) from e
    return wrapper


def image_options(func):
    """Options shared by every command that works on one image directory."""
    decorators = [
        click.argument('directory', required=False, default=None, type=click.Path(file_okay=False)),
        click.option('--repository', '-r', default=None, help='Repository to tag images under'),
        click.option('--namespace', '-n', default=None, help='Namespace of the labels in the Dockerfile'),
        click.option('--dockerfile', '-f', default=None, help='Dockerfile name inside DIRECTORY'),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def make_runner(ctx, directory, repository, namespace, dockerfile) -> ImageRunner:
    """Builds the runner for one image from the loaded config and the command's flags."""
    config = ctx.obj['config'].model_copy(update={
        key: value for key, value in {
            'directory': directory,
            'repository': repository,
            'namespace': namespace,
            'dockerfile': dockerfile,
        }.items() if value is not None
    })
    return ImageRunner(config)


@click.group()
@click.version_option(__version__, prog_name='dit')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--config', 'config_file', default=None, type=click.Path(dir_okay=False), help='YAML config file (default: ./dit.yml)')
@click.option('--env-file', default=None, type=click.Path(dir_okay=False), help='.env file (default: ./.env)')
@click.pass_context
def cli(ctx, debug, config_file, env_file):
    """
    DIT - Docker Image Tools.

    Build, lint, test and publish images kept one per directory, each with
    its own Dockerfile.
    """
    setup_logger(debug=debug)
    ctx.ensure_object(dict)
    try:
        ctx.obj['config'] = ConfigManager().load(config_file=config_file, env_file=env_file)
    except DitError as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@image_options
@click.option('--no-cache', is_flag=True, help='Do not use cached layers (default: DOCKER_NO_CACHE)')
@click.option('--version', 'version', default=None, help='Version to build, passed as the version build arg')
@click.option('--build-arg', 'build_args', multiple=True, help='Build arg as key=value (repeatable)')
@click.option('--latest/--no-latest', default=True, help='Also tag the image as latest')
@click.pass_context
@handle_errors
def build(ctx, directory, repository, namespace, dockerfile, no_cache, version, build_args, latest):
    """Build the image in DIRECTORY."""
    runner = make_runner(ctx, directory, repository, namespace, dockerfile)
    for tag in runner.build(no_cache=no_cache or None, version=version, build_args=build_args, latest=latest):
        click.echo(f"Built {tag}")


@cli.command()
@image_options
@click.option('--latest/--no-latest', default=True, help='Also push the latest tag')
@click.pass_context
@handle_errors
def push(ctx, directory, repository, namespace, dockerfile, latest):
    """Push the image built from DIRECTORY."""
    runner = make_runner(ctx, directory, repository, namespace, dockerfile)
    for tag in runner.push(latest=latest):
        click.echo(f"Pushed {tag}")


@cli.command()
@image_options
@click.pass_context
@handle_errors
def lint(ctx, directory, repository, namespace, dockerfile):
    """Lint the Dockerfile with hadolint running in a container."""
    runner = make_runner(ctx, directory, repository, namespace, dockerfile)
    runner.lint()
    click.echo(f"{runner.dockerfile_path} passed linting")


@cli.command(name='local-lint')
@image_options
@click.pass_context
@handle_errors
def local_lint(ctx, directory, repository, namespace, dockerfile):
    """Lint the Dockerfile with a locally installed hadolint."""
    runner = make_runner(ctx, directory, repository, namespace, dockerfile)
    runner.local_lint()
    click.echo(f"{runner.dockerfile_path} passed linting")


@cli.command(name='rev-labels')
@image_options
@click.pass_context
@handle_errors
def rev_labels(ctx, directory, repository, namespace, dockerfile):
    """Update the vcs-ref and build-date labels in the Dockerfile."""
    runner = make_runner(ctx, directory, repository, namespace, dockerfile)
    updated = runner.rev_labels()
    if not updated:
        click.echo(f"No labels updated in {runner.dockerfile_path}")


@cli.command()
@image_options
@click.pass_context
@handle_errors
def spec(ctx, directory, repository, namespace, dockerfile):
    """Run the tests in DIRECTORY/tests."""
    runner = make_runner(ctx, directory, repository, namespace, dockerfile)
    runner.spec()


@cli.command()
@image_options
@click.pass_context
@handle_errors
def version(ctx, directory, repository, namespace, dockerfile):
    """Print the version declared in the Dockerfile."""
    runner = make_runner(ctx, directory, repository, namespace, dockerfile)
    click.echo(runner.version())


@cli.command()
@click.argument('images', nargs=-1, required=True)
@click.pass_context
@handle_errors
def pull(ctx, images):
    """Pull IMAGES. An image without a tag is pulled with all of its tags."""
    docker = DockerClient.from_config(ctx.obj['config'])
    update_base_images(images, docker)


@cli.command(name='update-base-images')
@click.argument('tags', nargs=-1, required=True)
@click.pass_context
@handle_errors
def update_base_images_command(ctx, tags):
    """Pull the base images TAGS, e.g. ubuntu:16.04 centos:7."""
    docker = DockerClient.from_config(ctx.obj['config'])
    for tag in update_base_images(tags, docker):
        click.echo(f"Updated {tag}")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})

if __name__ == '__main__':
    main()
