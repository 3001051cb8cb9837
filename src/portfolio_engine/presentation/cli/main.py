"""
Main CLI interface for the portfolio engine.
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

from ...application.config.settings import ConfigManager, get_config_manager, reset_config_manager
from ...application.use_cases import (
    ENDPOINTS,
    CalculateReturnsUseCase,
    EngineResponse,
    SubmitInvestmentApplicationUseCase
)
from ...data.models.common import parse_timestamp
from ...data.models.portfolios import RiskLevel
from ...infrastructure.error_handling import PortfolioEngineError
from ...infrastructure.monitoring import setup_logging
from ..formatters.console_formatter import ConsoleFormatter

logger = logging.getLogger(__name__)

PORTFOLIO_COMMANDS = ("optimize", "risk-assessment", "stress-test", "portfolio-analysis")


class CLIInputError(Exception):
    """Raised when a CLI input file or flag cannot be used."""


class PortfolioEngineCLI:
    """
    Command line interface for the portfolio engine.

    Every endpoint reads its request body (and, where needed, a portfolio
    snapshot) from JSON files and prints the response body.
    """

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout
        self.console_formatter = ConsoleFormatter(stream=self.stream)

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Main entry point for CLI."""
        parser = self._create_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help(self.stream)
            return 1

        try:
            if args.config:
                reset_config_manager(ConfigManager(config_path=args.config))
            config_manager = get_config_manager()

            self._configure_logging(args.log_level or config_manager.get_log_level(), config_manager)

            result = self._execute_command(args, config_manager)
            self._output_result(result, args.output_format)

            return 0 if result.get("statusCode", 200) < 300 else 1

        except CLIInputError as e:
            self.console_formatter.print_error(f"Input Error: {str(e)}")
            return 1
        except PortfolioEngineError as e:
            self.console_formatter.print_error(f"Engine Error: {str(e)}")
            return 1
        except Exception as e:
            self.console_formatter.print_error(f"Unexpected Error: {str(e)}")
            logger.exception("Unexpected error in CLI")
            return 1

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog="portfolio-engine",
            description="Portfolio optimization and risk analytics engine",
            formatter_class=argparse.RawDescriptionHelpFormatter
        )

        parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default=None,
            help='Set logging level (defaults to the configured level)'
        )

        parser.add_argument(
            '--output-format',
            choices=['json', 'table'],
            default='json',
            help='Output format'
        )

        parser.add_argument(
            '--config',
            default=None,
            help='Path to an alternative settings.yaml'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        for command, help_text in (
            ('optimize', 'Optimize a portfolio allocation'),
            ('risk-assessment', 'Assess portfolio risk'),
            ('stress-test', 'Run stress scenarios against a portfolio'),
            ('portfolio-analysis', 'Analyze returns and risk over a timeframe'),
        ):
            sub = subparsers.add_parser(command, help=help_text)
            self._add_request_arguments(sub, portfolio_required=True)

        returns_parser = subparsers.add_parser('returns', help='Calculate investment returns')
        self._add_request_arguments(returns_parser, portfolio_required=None)

        application_parser = subparsers.add_parser(
            'investment-applications',
            help='Submit an investment application'
        )
        self._add_request_arguments(application_parser, portfolio_required=False)
        application_parser.add_argument(
            '--project-risk-level',
            choices=[level.value for level in RiskLevel],
            default=None,
            help='Risk level of the target project'
        )

        config_parser = subparsers.add_parser('config', help='Configuration management')
        config_parser.add_argument('config_action', choices=['show', 'validate'], help='Config action')

        return parser

    @staticmethod
    def _add_request_arguments(parser: argparse.ArgumentParser, portfolio_required: Optional[bool]):
        parser.add_argument('--request', required=True, help='Path to the request JSON body')
        if portfolio_required is not None:
            parser.add_argument(
                '--portfolio',
                required=portfolio_required,
                help='Path to the portfolio snapshot JSON'
            )
        parser.add_argument(
            '--as-of',
            default=None,
            help='Valuation timestamp (ISO-8601), defaults to now'
        )

    def _configure_logging(self, log_level: str, config_manager: ConfigManager):
        setup_logging(
            log_level=log_level,
            log_dir=config_manager.get_value('application.log_dir', 'logs'),
            enable_console=True,
            enable_json=config_manager.get_value('application.enable_json_logs', False)
        )

    def _execute_command(self, args, config_manager: ConfigManager) -> Dict[str, Any]:
        """Execute the parsed command."""
        if args.command == 'config':
            return self._execute_config_command(args, config_manager)

        request = self._load_json(args.request)
        as_of = self._parse_as_of(args.as_of)

        if args.command in PORTFOLIO_COMMANDS:
            portfolio = self._load_json(args.portfolio)
            use_case = ENDPOINTS[args.command]()
            response = use_case.execute(request, portfolio, as_of=as_of)

        elif args.command == 'returns':
            response = CalculateReturnsUseCase().execute(request, as_of=as_of)

        elif args.command == 'investment-applications':
            portfolio = self._load_json(args.portfolio) if args.portfolio else None
            response = SubmitInvestmentApplicationUseCase().execute(
                request,
                portfolio=portfolio,
                project_risk_level=args.project_risk_level,
                as_of=as_of
            )

        else:
            raise CLIInputError(f"Unknown command: {args.command}")

        return self._wrap(args.command, response)

    @staticmethod
    def _wrap(command: str, response: EngineResponse) -> Dict[str, Any]:
        return {
            'command': command,
            'statusCode': response.status_code,
            'body': response.body
        }

    def _execute_config_command(self, args, config_manager: ConfigManager) -> Dict[str, Any]:
        """Execute config management command."""
        if args.config_action == 'show':
            return {'command': 'config', 'action': 'show', 'config': config_manager.to_dict()}

        # Loading already validated against the schema; reload picks up edits
        config_manager.reload_config()
        return {'command': 'config', 'action': 'validate', 'status': 'valid'}

    @staticmethod
    def _load_json(path: str) -> Any:
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except OSError as e:
            raise CLIInputError(f"Cannot read {path}: {e.strerror}")
        except json.JSONDecodeError as e:
            raise CLIInputError(f"Invalid JSON in {path}: {e.msg} (line {e.lineno})")

    @staticmethod
    def _parse_as_of(value: Optional[str]) -> Optional[datetime]:
        if value is None:
            return None
        parsed = parse_timestamp(value)
        if parsed is None:
            raise CLIInputError(f"Invalid --as-of timestamp: {value}")
        return parsed

    def _output_result(self, result: Dict[str, Any], format_type: str):
        """Output result in specified format."""
        if format_type == 'json' or result['command'] == 'config':
            print(json.dumps(result.get('body', result), indent=2, default=str), file=self.stream)
            return

        body = result['body']
        if result['statusCode'] >= 300:
            self._output_errors(result['statusCode'], body)
        elif result['command'] == 'optimize':
            self._output_optimization_table(body)
        elif result['command'] == 'stress-test':
            self._output_stress_table(body)
        elif result['command'] == 'returns':
            self._output_returns_table(body)
        elif result['command'] == 'portfolio-analysis':
            self.console_formatter.print_metrics(body['returns'], title="Returns")
            self.console_formatter.print_metrics(body['risk'], title="Risk")
        else:
            self.console_formatter.print_metrics(body, title=result['command'])

    def _output_errors(self, status_code: int, body: Dict[str, Any]):
        self.console_formatter.print_error(f"Request failed with status {status_code}")
        headers = ['Field', 'Code', 'Message']
        rows = [[e.get('field') or '-', e.get('code'), e.get('message')] for e in body.get('errors', [])]
        self.console_formatter.print_table_simple(headers, rows)
        for reason in body.get('reasons', []):
            self.console_formatter.print_warning(reason)

    def _output_optimization_table(self, body: Dict[str, Any]):
        optimization = body['optimization']
        fmt = self.console_formatter

        fmt.print_success(body['message'])
        fmt.print_header("Allocation")
        headers = ['Investment', 'Sector', 'Current', 'Target', 'Action', 'Amount']
        rows = [
            [
                rec['investmentId'],
                rec['sector'],
                f"{rec['currentWeight']:.2%}",
                f"{rec['recommendedWeight']:.2%}",
                rec['action'],
                f"{rec['transactionAmount']:,.2f}"
            ]
            for rec in optimization['recommendations']
        ]
        fmt.print_table_simple(headers, rows)

        fmt.print_key_value("Expected return", fmt.format_percentage(optimization['expectedReturn']))
        fmt.print_key_value("Expected risk", fmt.format_percentage(optimization['expectedRisk'], show_sign=False))
        fmt.print_key_value("Rebalancing cost", fmt.format_value(optimization['rebalancingCost']))

        for recommendation in body['recommendations']:
            fmt.print_info(f"[{recommendation['priority']}] {recommendation['title']}")

    def _output_stress_table(self, body: Dict[str, Any]):
        headers = ['Scenario', 'Type', 'Loss', 'Loss %', 'Threshold', 'Breached']
        rows = [
            [
                s['scenarioName'],
                s['scenarioType'],
                f"{s['loss']:,.2f}",
                f"{s['lossPercentage']:.2f}%",
                self.console_formatter.format_value(s['maxLossThreshold']),
                'yes' if s['exceedsThreshold'] else 'no'
            ]
            for s in body['scenarios']
        ]
        self.console_formatter.print_header(f"Stress test: {body['portfolioId']}")
        self.console_formatter.print_table_simple(headers, rows)
        if body['breachedCount']:
            self.console_formatter.print_warning(f"{body['breachedCount']} scenario(s) breach their loss threshold")

    def _output_returns_table(self, body: Dict[str, Any]):
        fmt = self.console_formatter
        headers = ['#', 'Reference', 'Amount', 'Value', 'Return %', 'Annualized', 'Issues']
        rows = [
            [
                r['index'],
                r['reference'] or '-',
                f"{r['amount']:,.2f}",
                f"{r['currentValue']:,.2f}",
                f"{r['returnPercentage']:.2f}",
                fmt.format_value(r['annualizedReturn']),
                ", ".join(issue['code'] for issue in r['issues']) or '-'
            ]
            for r in body['results']
        ]
        fmt.print_header(f"Returns ({body['calculationType']})")
        fmt.print_table_simple(headers, rows)
        fmt.print_metrics(body['summary'], title="Summary")


def main():
    """Main entry point."""
    cli = PortfolioEngineCLI()
    return cli.run()


if __name__ == '__main__':
    sys.exit(main())
