"""Dependency container: builds and owns the controllers and their stores.

Registry, gate and channel are owned per container instance, so tests (or
separate windows) can create isolated instances.
"""

from decimal import Decimal

import httpx

from codenova.application.services.agent_loop_service import AgentLoopController
from codenova.application.services.chat_session_service import ChatSessionController
from codenova.configuration.config import Settings, get_settings
from codenova.domain.ports.services.blob_store_port import BlobStorePort
from codenova.domain.ports.services.credentials_port import CredentialsPort
from codenova.domain.ports.services.file_service_port import FileServicePort
from codenova.infrastructure.adapters.local_file_service import LocalFileService
from codenova.infrastructure.adapters.settings_credentials import SettingsCredentials
from codenova.infrastructure.agent.permission.gate import PermissionGate
from codenova.infrastructure.agent.process.port import AgentProcess
from codenova.infrastructure.agent.session_registry import AgentSessionRegistry
from codenova.infrastructure.events.chunk_channel import ChunkChannel
from codenova.infrastructure.llm.cost_tracker import CostTracker, ModelCost
from codenova.infrastructure.llm.transport import TransportAdapter, create_transport
from codenova.infrastructure.persistence.message_store import InMemoryBlobStore, MessageStore


class Container:
    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        agent_process: AgentProcess | None = None,
        blob_store: BlobStorePort | None = None,
        file_service: FileServicePort | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http_client = http_client
        self._agent_process = agent_process
        self._blob_store = blob_store
        self._file_service = file_service

        self._channel: ChunkChannel | None = None
        self._registry: AgentSessionRegistry | None = None
        self._gate: PermissionGate | None = None
        self._transport: TransportAdapter | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    def channel(self) -> ChunkChannel:
        if self._channel is None:
            self._channel = ChunkChannel()
        return self._channel

    def session_registry(self) -> AgentSessionRegistry:
        if self._registry is None:
            self._registry = AgentSessionRegistry()
        return self._registry

    def permission_gate(self) -> PermissionGate:
        if self._gate is None:
            self._gate = PermissionGate(
                publisher=self.channel().send_permission_request,
                timeout_seconds=self._settings.permission_timeout_seconds,
            )
        return self._gate

    def credentials(self) -> CredentialsPort:
        return SettingsCredentials(self._settings)

    def file_service(self) -> FileServicePort:
        if self._file_service is None:
            self._file_service = LocalFileService(self._settings.agent_working_directory)
        return self._file_service

    def transport(self) -> TransportAdapter:
        if self._transport is None:
            self._transport = create_transport(
                self._settings.transport_mode,
                client=self._http_client,
                timeout=self._settings.llm_timeout,
                connect_timeout=self._settings.llm_connect_timeout,
            )
        return self._transport

    def cost_tracker(self) -> CostTracker:
        return CostTracker(
            default_cost=ModelCost(
                input=Decimal(str(self._settings.input_cost_per_1m)),
                output=Decimal(str(self._settings.output_cost_per_1m)),
            )
        )

    def agent_process(self) -> AgentProcess:
        if self._agent_process is None:
            from codenova.infrastructure.agent.process.claude_process import ClaudeAgentProcess

            self._agent_process = ClaudeAgentProcess()
        return self._agent_process

    def message_store(self) -> MessageStore:
        if self._blob_store is None:
            self._blob_store = InMemoryBlobStore()
        return MessageStore(self._blob_store)

    def chat_controller(self) -> ChatSessionController:
        return ChatSessionController(
            transport=self.transport(),
            credentials=self.credentials(),
            sink=self.channel(),
            file_service=self.file_service(),
            cost_tracker=self.cost_tracker(),
            max_tokens=self._settings.max_tokens,
            temperature=self._settings.temperature,
        )

    def agent_controller(self) -> AgentLoopController:
        return AgentLoopController(
            process=self.agent_process(),
            registry=self.session_registry(),
            gate=self.permission_gate(),
            sink=self.channel(),
            credentials=self.credentials(),
            working_directory=self._settings.agent_working_directory,
            max_turns=self._settings.agent_max_turns,
            tool_result_max_chars=self._settings.tool_result_max_chars,
            cli_path=self._settings.agent_cli_path,
        )

    async def aclose(self) -> None:
        if self._transport is not None:
            await self._transport.aclose()
        if self._channel is not None:
            self._channel.close()
