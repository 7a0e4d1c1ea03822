"""Run owner lifecycle scenarios and show the order in which resources are given back."""
import argparse
import gc

from pandas import DataFrame
from pandas import concat

from releasable.owners import NativeBlock
from releasable.owners import SpillableBlock
from releasable.owners import StagedBuffer
from releasable.recording import EventLog
from releasable.recording import RecordingSource
from releasable.recording import RecordingSubresource
from releasable.sources import HeapMemorySource
from releasable.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)


def parse_args(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog='releasable-demo',
        description='Show deterministic and fallback release of resource owners.',
    )
    parser.add_argument(
        '--scenario',
        dest='scenario',
        choices=available_scenarios() + ('all',),
        default='all',
        help='The lifecycle scenario to run.',
    )
    parser.add_argument(
        '--block-size',
        dest='block_size',
        type=int,
        default=64,
        help='Size in bytes of each raw heap block.',
    )
    parser.add_argument(
        '--output',
        dest='output',
        required=False,
        help='Also write the events to this file, tab-separated.',
    )
    return parser.parse_args(argv)


def available_scenarios() -> tuple[str, ...]:
    return ('deterministic', 'fallback', 'derived')


def run_deterministic(log: EventLog, block_size: int) -> None:
    source = RecordingSource(HeapMemorySource(block_size), log, 'block')
    with StagedBuffer(source) as buffer:
        buffer.add_subresource(RecordingSubresource(log, 'report'))
        buffer.stage(b'staged bytes')
        buffer.commit()
    buffer.release()


def run_fallback(log: EventLog, block_size: int) -> None:
    block = SpillableBlock(
        RecordingSource(HeapMemorySource(block_size), log, 'base block'),
        RecordingSource(HeapMemorySource(block_size), log, 'overflow block'),
    )
    block.add_subresource(RecordingSubresource(log, 'report'), level=SpillableBlock)
    block.store(b'x' * (block_size + 1))
    del block
    gc.collect()


def run_derived(log: EventLog, block_size: int) -> None:
    block: NativeBlock = SpillableBlock(
        RecordingSource(HeapMemorySource(block_size), log, 'base block'),
        RecordingSource(HeapMemorySource(block_size), log, 'overflow block'),
    )
    block.add_subresource(RecordingSubresource(log, 'report'), level=SpillableBlock)
    block.release()
    block.release()


def run_scenario(scenario: str, block_size: int) -> DataFrame:
    runners = {
        'deterministic': run_deterministic,
        'fallback': run_fallback,
        'derived': run_derived,
    }
    if scenario not in runners:
        raise ValueError(f'Scenario "{scenario}" is not supported.')
    log = EventLog()
    logger.info('Running scenario %s.', scenario)
    runners[scenario](log, block_size)
    df = DataFrame(log.as_records(), columns=['sequence', 'kind', 'resource'])
    df.insert(0, 'scenario', scenario)
    return df


def lifecycle_report(scenario: str, block_size: int) -> DataFrame:
    scenarios = available_scenarios() if scenario == 'all' else (scenario,)
    return concat([run_scenario(s, block_size) for s in scenarios], axis=0, ignore_index=True)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    df = lifecycle_report(args.scenario, args.block_size)
    print(df.to_string(index=False))
    if args.output:
        df.to_csv(args.output, sep='\t', index=False)


if __name__=='__main__':
    main()
